"""
Pose detection using MoveNet, plus skeleton drawing.
"""
import cv2

from .geometry import to_pixels
from .joints import SKELETON_PAIRS
from .pose_source import MIN_JOINT_CONFIDENCE, SourceFailureError, frame_from_keypoints

try:
    import tensorflow as tf
    import tensorflow_hub as hub
except Exception as e:
    raise SystemExit(
        "Failed to import TensorFlow / TF Hub. Install with:\n"
        "  pip install 'squatcore[movenet]'\n\n"
        f"Original error: {e}"
    )

# MoveNet SinglePose keypoint order
KEYPOINT_NAMES = [
    "nose", "left_eye", "right_eye", "left_ear", "right_ear",
    "left_shoulder", "right_shoulder", "left_elbow", "right_elbow",
    "left_wrist", "right_wrist", "left_hip", "right_hip",
    "left_knee", "right_knee", "left_ankle", "right_ankle"
]

MODELS = {
    "thunder": ("https://tfhub.dev/google/movenet/singlepose/thunder/4", 256),
    "lightning": ("https://tfhub.dev/google/movenet/singlepose/lightning/4", 192),
}


def load_movenet(model="thunder"):
    """
    Load MoveNet SinglePose model from TensorFlow Hub.

    Args:
        model: Either 'thunder' (more accurate, 256x256) or
               'lightning' (faster, 192x192)

    Returns:
        Tuple of (model_function, input_size)
    """
    handle, input_size = MODELS[model]
    try:
        m = hub.load(handle)
        return m.signatures["serving_default"], input_size
    except Exception as e:
        raise SystemExit(
            "Failed to load MoveNet from TF Hub.\n"
            "Check your internet and ensure tensorflow-hub is installed.\n"
            f"Original error: {e}"
        )


def preprocess_frame(frame, input_size):
    """Convert an OpenCV BGR frame into a MoveNet input tensor."""
    img = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    img_resized = cv2.resize(img, (input_size, input_size))
    input_tensor = tf.convert_to_tensor(img_resized, dtype=tf.int32)
    return tf.expand_dims(input_tensor, axis=0)


def extract_keypoints(model_output):
    """
    Extract keypoints from MoveNet output.

    MoveNet emits [1, 1, 17, 3] rows of (y, x, score); this returns them as
    (x, y) so they match the joint set convention.

    Returns:
        Tuple of (keypoints_xy, confidences) with shapes (17, 2) and (17,)
    """
    kps = model_output["output_0"].numpy()[0, 0, :, :]
    keypoints_xy = kps[:, [1, 0]]
    confidences = kps[:, 2]
    return keypoints_xy, confidences


class MoveNetPoseSource:
    """Runs MoveNet on camera frames and returns PoseFrames."""

    def __init__(self, model="thunder", min_conf=MIN_JOINT_CONFIDENCE):
        self.movenet, self.input_size = load_movenet(model)
        self.min_conf = min_conf

    def detect(self, frame):
        """
        Raises:
            SourceFailureError: The frame is empty or inference failed
            NoObservationError, InsufficientJointsError: see frame_from_keypoints
        """
        if frame is None or getattr(frame, "size", 0) == 0:
            raise SourceFailureError("Empty camera frame")
        try:
            outputs = self.movenet(preprocess_frame(frame, self.input_size))
        except (tf.errors.OpError, ValueError) as e:
            raise SourceFailureError(f"MoveNet inference failed: {e}") from e
        keypoints_xy, confidences = extract_keypoints(outputs)
        return frame_from_keypoints(keypoints_xy, confidences, KEYPOINT_NAMES, self.min_conf)


def draw_skeleton(frame, joints):
    """
    Draw skeleton overlay on frame.

    Args:
        frame: OpenCV frame (modified in-place)
        joints: JointSet in normalized coordinates
    """
    h, w = frame.shape[:2]

    for a, b in SKELETON_PAIRS:
        pa, pb = joints.get(a), joints.get(b)
        if pa is not None and pb is not None:
            cv2.line(frame, to_pixels(pa, w, h), to_pixels(pb, w, h), (255, 255, 255), 2)

    for p in joints.values():
        cv2.circle(frame, to_pixels(p, w, h), 3, (0, 255, 0), -1)
