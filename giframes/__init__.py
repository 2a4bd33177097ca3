from .compositor import CanvasBounds, Disposal, composite
from .decoder import Animation, DecodeError, Frame, decode
from .export import EncodeError, Format, extract_frames
