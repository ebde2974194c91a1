class ImageDecodeError(ValueError):
    """Input bytes (or data URI) are not a decodable image."""


class AITransformError(RuntimeError):
    """The image transform service failed or returned no image."""


class SpreadsheetError(ValueError):
    """Sheet, column or data missing from the uploaded workbook."""


class InputNotFoundError(FileNotFoundError):
    """None of the candidate locations for an input image exist."""
