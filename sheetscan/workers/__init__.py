from .recognition_worker import RecognitionWorker

__all__ = ['RecognitionWorker']
