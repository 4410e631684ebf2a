"""
Runtime selection of frame processors.
"""

from typing import Dict, Sequence, Type

from .basex import FrameProcessor
from .edgex import EdgeDetector
from .blurx import FrameBlurrer
from .ppmx import RawFrameExporter


PROCESSORS: Dict[str, Type[FrameProcessor]] = {
    'edge': EdgeDetector,
    'blur': FrameBlurrer,
    'raw': RawFrameExporter,
}


def create_processor(name: str, **kwargs) -> FrameProcessor:
    """Instantiate the processor registered under ``name``."""
    try:
        processor_class = PROCESSORS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown processor: {name}. Use one of {sorted(PROCESSORS)}") from None
    return processor_class(**kwargs)


def build_processor_chain(names: Sequence[str], **kwargs) -> FrameProcessor:
    """
    Build a chain of processors that all run on every frame.

    Args:
        names: Processor names, in the order they run
        **kwargs: Arguments passed to every processor (output_dir, create_dirs)

    Returns:
        The first processor of the chain
    """
    if isinstance(names, str):
        names = [names]
    if not names:
        raise ValueError("At least one processor is required")

    head = create_processor(names[0], **kwargs)
    tail = head
    for name in names[1:]:
        tail = tail.set_next(create_processor(name, **kwargs))
    return head
