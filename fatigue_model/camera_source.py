"""
Camera Face Source
OpenCV capture + MediaPipe face landmarks -> FaceObservation per frame.
Imported lazily by the backend so the core package runs without a camera stack.
"""

import logging
import math
import os
import platform
import urllib.request
from typing import Dict, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

from .errors import SensorUnavailableError
from .facial_metrics import FaceObservation, FaceSource

logger = logging.getLogger("fatigue_model.camera")


# ============================================================================
# MEDIAPIPE COMPATIBILITY LAYER
# mediapipe >= 0.10.30 removed mp.solutions; use mp.tasks API instead.
# ============================================================================

_USE_TASKS_API = not hasattr(mp, 'solutions')

_MODELS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.models')
_FACE_MODEL_PATH = os.path.join(_MODELS_DIR, 'face_landmarker.task')
_FACE_MODEL_URL = (
    'https://storage.googleapis.com/mediapipe-models/'
    'face_landmarker/face_landmarker/float16/latest/face_landmarker.task'
)


def _ensure_model_downloaded() -> None:
    """Download the MediaPipe face landmarker model if not already cached."""
    os.makedirs(_MODELS_DIR, exist_ok=True)
    if not os.path.exists(_FACE_MODEL_PATH):
        logger.info("Downloading %s ...", os.path.basename(_FACE_MODEL_PATH))
        urllib.request.urlretrieve(_FACE_MODEL_URL, _FACE_MODEL_PATH)


class _LandmarkListWrapper:
    """Wraps new-API landmark list to provide old-API .landmark[idx] access."""
    __slots__ = ('landmark',)

    def __init__(self, landmarks):
        self.landmark = landmarks


# ============================================================================
# LANDMARK GEOMETRY
# ============================================================================

class FaceLandmarks:
    """MediaPipe FaceMesh indices used for eye openness and head pose"""

    LEFT_EYE_INDICES = {
        'top': 159, 'bottom': 145,
        'left': 33, 'right': 133,
        'v1': 158, 'v2': 153
    }

    RIGHT_EYE_INDICES = {
        'top': 386, 'bottom': 374,
        'left': 362, 'right': 263,
        'v1': 385, 'v2': 380
    }

    HEAD_MODEL_3D = np.array([
        (0.0, 0.0, 0.0),
        (0.0, -330.0, -65.0),
        (-225.0, 170.0, -135.0),
        (225.0, 170.0, -135.0),
        (-150.0, -150.0, -125.0),
        (150.0, -150.0, -125.0)
    ], dtype=np.float64)

    HEAD_MODEL_2D_INDICES = [1, 152, 33, 263, 61, 291]


def _distance(p1, p2) -> float:
    return math.sqrt((p1.x - p2.x) ** 2 + (p1.y - p2.y) ** 2)


def eye_aspect_ratio(eye: Dict[str, int], face_landmarks) -> float:
    lm = face_landmarks.landmark
    vertical_1 = _distance(lm[eye['top']], lm[eye['bottom']])
    vertical_2 = _distance(lm[eye['v1']], lm[eye['v2']])
    horizontal = _distance(lm[eye['left']], lm[eye['right']])
    return (vertical_1 + vertical_2) / (2.0 * horizontal) if horizontal > 0 else 0.0


class HeadPoseEstimator:
    def __init__(self):
        self.model_points = FaceLandmarks.HEAD_MODEL_3D
        self.dist_coeffs = np.zeros((4, 1))

    def estimate(self, face_landmarks, frame_width: int, frame_height: int) -> Optional[Tuple[float, float, float]]:
        """Returns (yaw, pitch, roll) in degrees, or None when solvePnP fails."""
        image_points = np.array([
            (face_landmarks.landmark[idx].x * frame_width,
             face_landmarks.landmark[idx].y * frame_height)
            for idx in FaceLandmarks.HEAD_MODEL_2D_INDICES
        ], dtype=np.float64)

        focal_length = frame_width
        center = (frame_width / 2, frame_height / 2)
        camera_matrix = np.array([
            [focal_length, 0, center[0]],
            [0, focal_length, center[1]],
            [0, 0, 1]
        ], dtype=np.float64)

        success, rotation_vector, _ = cv2.solvePnP(
            self.model_points, image_points, camera_matrix,
            self.dist_coeffs, flags=cv2.SOLVEPNP_ITERATIVE
        )
        if not success:
            return None

        rotation_matrix, _ = cv2.Rodrigues(rotation_vector)
        sy = math.sqrt(rotation_matrix[0, 0] ** 2 + rotation_matrix[1, 0] ** 2)

        if sy >= 1e-6:
            pitch = math.atan2(-rotation_matrix[2, 0], sy)
            yaw = math.atan2(rotation_matrix[1, 0], rotation_matrix[0, 0])
            roll = math.atan2(rotation_matrix[2, 1], rotation_matrix[2, 2])
        else:
            pitch = math.atan2(-rotation_matrix[2, 0], sy)
            yaw = math.atan2(-rotation_matrix[1, 2], rotation_matrix[1, 1])
            roll = 0

        return (math.degrees(yaw), math.degrees(pitch), math.degrees(roll))


# ============================================================================
# CAMERA
# ============================================================================

def open_camera(index: int = 0) -> "cv2.VideoCapture":
    """Try platform backends in order; returns an opened capture or raises."""
    if platform.system() == "Windows":
        backends = [(cv2.CAP_DSHOW, "DirectShow"), (cv2.CAP_MSMF, "MSMF"), (cv2.CAP_ANY, "Any")]
    else:
        backends = [(cv2.CAP_V4L2, "V4L2"), (cv2.CAP_ANY, "Any")]

    for backend, name in backends:
        logger.info(f"Trying camera {index} with backend {name}")
        cap = cv2.VideoCapture(index, backend)
        if cap.isOpened():
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, 640)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 480)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            logger.info(f"Camera opened with {name}")
            return cap
        cap.release()
        logger.warning(f"Failed to open camera with {name}")

    raise SensorUnavailableError("camera", "Unable to access webcam. Please check permissions.")


class CameraFaceSource(FaceSource):
    """
    Reads one webcam frame per observe() call.

    blink         mean EAR below blink_ear_threshold on this frame
    eye_openness  mean EAR / open_ear_reference, clamped to [0, 1]
    head_pose     exponentially smoothed pitch in degrees
    """

    name = "camera"

    def __init__(self, camera_index: int = 0, blink_ear_threshold: float = 0.21,
                 open_ear_reference: float = 0.30, pose_smoothing_factor: float = 0.2):
        self.camera_index = camera_index
        self.blink_ear_threshold = blink_ear_threshold
        self.open_ear_reference = open_ear_reference
        self.pose_smoothing_factor = pose_smoothing_factor
        self.smooth_pitch = 0.0
        self._cap = None
        self._face_mesh = None
        self._face_landmarker = None
        self._head_pose = HeadPoseEstimator()

    def open(self) -> None:
        if self._cap is not None:
            return
        try:
            self._init_mediapipe()
            self._cap = open_camera(self.camera_index)
        except SensorUnavailableError:
            self.close()
            raise
        except Exception as e:
            self.close()
            raise SensorUnavailableError("camera", f"Face tracking unavailable: {e}") from e

    def _init_mediapipe(self) -> None:
        if _USE_TASKS_API:
            _ensure_model_downloaded()
            options = mp.tasks.vision.FaceLandmarkerOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=_FACE_MODEL_PATH),
                running_mode=mp.tasks.vision.RunningMode.IMAGE,
                num_faces=1,
            )
            self._face_landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(options)
        else:
            self._face_mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=1,
                refine_landmarks=True,
                min_detection_confidence=0.5,
                min_tracking_confidence=0.5
            )

    def _detect(self, frame_rgb):
        if _USE_TASKS_API:
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(frame_rgb))
            result = self._face_landmarker.detect(mp_image)
            return _LandmarkListWrapper(result.face_landmarks[0]) if result.face_landmarks else None
        result = self._face_mesh.process(frame_rgb)
        return result.multi_face_landmarks[0] if result.multi_face_landmarks else None

    def observe(self) -> Optional[FaceObservation]:
        if self._cap is None:
            raise SensorUnavailableError("camera", "Camera is not open")

        ok, frame = self._cap.read()
        if not ok:
            raise SensorUnavailableError("camera", "Camera stream ended")

        frame_height, frame_width = frame.shape[:2]
        face_landmarks = self._detect(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        if face_landmarks is None:
            return None

        ear = (eye_aspect_ratio(FaceLandmarks.LEFT_EYE_INDICES, face_landmarks) +
               eye_aspect_ratio(FaceLandmarks.RIGHT_EYE_INDICES, face_landmarks)) / 2.0

        angles = self._head_pose.estimate(face_landmarks, frame_width, frame_height)
        if angles:
            _, raw_pitch, _ = angles
            self.smooth_pitch = (raw_pitch * self.pose_smoothing_factor) + \
                                (self.smooth_pitch * (1.0 - self.pose_smoothing_factor))

        return FaceObservation(
            blink=ear < self.blink_ear_threshold,
            eye_openness=min(max(ear / self.open_ear_reference, 0.0), 1.0),
            head_pose_degrees=self.smooth_pitch,
        )

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released")
        for attr in ('_face_landmarker', '_face_mesh'):
            obj = getattr(self, attr)
            if obj is not None:
                try:
                    obj.close()
                except Exception as e:
                    logger.warning(f"Failed to close {attr}: {e}")
                setattr(self, attr, None)
