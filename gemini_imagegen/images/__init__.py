from .mime import guess_image_mime_from_path, sniff_image_mime
from .save import SaveImageResult, resolve_output_path, save_first_image

__all__ = [
    "SaveImageResult",
    "guess_image_mime_from_path",
    "resolve_output_path",
    "save_first_image",
    "sniff_image_mime",
]
