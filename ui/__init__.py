from .main_window import ProcessingWindow

__all__ = ["ProcessingWindow"]
