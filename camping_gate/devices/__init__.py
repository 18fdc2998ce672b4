from .camera import CV2_AVAILABLE, CameraDevice, Frame, OpenCVCamera, decode_qr

__all__ = ["CV2_AVAILABLE", "CameraDevice", "Frame", "OpenCVCamera", "decode_qr"]
