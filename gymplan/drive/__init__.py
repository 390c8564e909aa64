from .client import DriveClient, DriveNetworkError, extract_file_id
from .validator import LinkValidator

__all__ = ["DriveClient", "DriveNetworkError", "LinkValidator", "extract_file_id"]
