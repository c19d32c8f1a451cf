"""
Real-time squat counter and form coach using webcam + MoveNet.
"""
import argparse
import logging
import time
from collections import deque

import cv2
import numpy as np

from squatcore.filters import JointSmoother
from squatcore.pose_detection import MoveNetPoseSource, draw_skeleton
from squatcore.pose_source import PoseFrame, PoseSourceError
from squatcore.session import WorkoutSession


def console_speech(text, priority):
    print(f"[voice{' !' if priority else ''}] {text}")


def console_haptic(intensity):
    logging.getLogger("haptics").debug("pulse %.1f", intensity)


def console_sound():
    print("\a", end="", flush=True)


def parse_args():
    parser = argparse.ArgumentParser(
        description="Squat counter and form coach with MoveNet"
    )
    parser.add_argument(
        "--model",
        choices=["lightning", "thunder"],
        default="thunder",
        help="MoveNet model variant (thunder=accurate, lightning=fast)"
    )
    parser.add_argument(
        "--device",
        type=int,
        default=0,
        help="Webcam device index"
    )
    parser.add_argument(
        "--min_conf",
        type=float,
        default=0.3,
        help="Minimum keypoint confidence threshold"
    )
    parser.add_argument(
        "--smooth",
        action="store_true",
        help="Smooth keypoints with a One Euro filter"
    )
    parser.add_argument(
        "--min_cutoff",
        type=float,
        default=1.0,
        help="One Euro filter minimum cutoff frequency"
    )
    parser.add_argument(
        "--beta",
        type=float,
        default=0.1,
        help="One Euro filter beta (speed coefficient)"
    )
    parser.add_argument(
        "--mirror",
        action="store_true",
        help="Mirror camera horizontally (selfie mode)"
    )
    parser.add_argument(
        "--no_speech",
        action="store_true",
        help="Disable voice feedback"
    )
    parser.add_argument(
        "--no_sound",
        action="store_true",
        help="Disable the rep sound cue"
    )
    parser.add_argument(
        "--hide_skeleton",
        action="store_true",
        help="Do not draw the skeleton overlay"
    )
    parser.add_argument(
        "--log_level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity"
    )
    return parser.parse_args()


def put_text(frame, text, org, scale=0.6, color=(255, 255, 255), thickness=2):
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness)


def draw_hud(frame, status, fps):
    h, w = frame.shape[:2]

    cv2.rectangle(frame, (8, 8), (260, 85), (0, 0, 0), -1)
    put_text(frame, f"Reps: {status.rep_count}", (15, 35), 0.9, (0, 255, 0))
    put_text(frame, status.squat_state.description, (15, 70), 0.6, (0, 255, 255))
    put_text(frame, f"FPS: {fps:.1f}", (w - 140, 35), 0.7)

    # Rep progress bar
    bar_w = int(240 * status.rep_progress)
    cv2.rectangle(frame, (10, 92), (250, 102), (80, 80, 80), -1)
    if bar_w > 0:
        cv2.rectangle(frame, (10, 92), (10 + bar_w, 102), (0, 255, 0), -1)

    score_color = (0, 255, 0) if status.form_score >= 66 else (0, 165, 255)
    put_text(frame, f"Form: {status.form_score}", (w - 140, 70), 0.7, score_color)

    if status.knee_angle is not None:
        put_text(frame, f"Knee: {int(status.knee_angle)} deg", (10, h - 45), 0.6, (0, 255, 255))

    if status.is_too_close:
        put_text(frame, "TOO CLOSE - STEP BACK", (w // 2 - 150, 40), 0.8, (0, 0, 255))
    elif status.is_too_far:
        put_text(frame, "TOO FAR - MOVE CLOSER", (w // 2 - 150, 40), 0.8, (0, 165, 255))
    elif status.is_optimal_distance:
        put_text(frame, "DISTANCE OK", (w // 2 - 80, 40), 0.8, (0, 255, 0))

    msg_color = (0, 0, 255) if status.error_message else (255, 255, 255)
    put_text(frame, status.feedback_message, (10, h - 20), 0.6, msg_color)


def main():
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"Loading MoveNet {args.model} model...")
    source = MoveNetPoseSource(args.model, min_conf=args.min_conf)
    print("Model loaded successfully!")

    cap = cv2.VideoCapture(args.device)
    if not cap.isOpened():
        raise SystemExit(f"Could not open webcam device {args.device}")

    smoother = JointSmoother(min_cutoff=args.min_cutoff, beta=args.beta) if args.smooth else None

    session = WorkoutSession(
        speech_sink=console_speech,
        haptic_sink=console_haptic,
        sound_sink=console_sound,
    )
    session.speech_enabled = not args.no_speech
    session.sound_enabled = not args.no_sound
    session.start()

    fps_hist = deque(maxlen=30)
    prev_time = time.time()

    print("\nStarting real-time squat counter...")
    print("Press 'r' to reset, 'q' or ESC to quit\n")

    while True:
        ret, frame = cap.read()
        if not ret:
            break

        if args.mirror:
            frame = cv2.flip(frame, 1)

        session.tick()

        if session.accept_frame():
            try:
                pose = source.detect(frame)
                if smoother is not None:
                    pose = PoseFrame(smoother(pose.joints, session.scheduler.now()), pose.confidences)
                session.process_frame(pose)
            except PoseSourceError as e:
                if smoother is not None:
                    smoother.reset()
                session.handle_pose_error(e)

        if not args.hide_skeleton:
            draw_skeleton(frame, session.joint_points)

        now = time.time()
        fps_hist.append(1.0 / max(1e-6, now - prev_time))
        prev_time = now

        draw_hud(frame, session.status(), float(np.mean(fps_hist)))
        cv2.imshow("MoveNet Squat Coach", frame)

        key = cv2.waitKey(1) & 0xFF
        if key in (27, ord('q')):  # ESC or 'q'
            break
        if key == ord('r'):
            session.reset_workout()

    session.stop()
    cap.release()
    cv2.destroyAllWindows()

    stats = session.workout_stats()
    print(f"\nSession complete! Total reps: {stats.reps} "
          f"({stats.duration:.0f}s, ~{stats.calories:.1f} kcal)")


if __name__ == "__main__":
    main()
