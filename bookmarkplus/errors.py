from __future__ import annotations


class BookmarkPlusError(Exception):
    """Base class for errors raised by the bookmark core."""


class ValidationError(BookmarkPlusError, ValueError):
    """Caller input was rejected; no state was changed."""


class DuplicateURLError(ValidationError):
    def __init__(self, url: str, existing_title: str):
        super().__init__(f'Bookmark already exists for this URL: "{existing_title}"')
        self.url = url
        self.existing_title = existing_title


class UnknownFolderError(ValidationError):
    def __init__(self, folder_id: str):
        super().__init__(f"Folder not found: {folder_id}")
        self.folder_id = folder_id


class ImportDataError(ValidationError):
    """The import document is malformed."""


class VersionMismatchError(ImportDataError):
    def __init__(self, document_version: str, current_version: str):
        super().__init__(
            f"Import data version ({document_version}) is newer than current app version "
            f"({current_version}). Please update bookmarkplus."
        )
        self.document_version = document_version
        self.current_version = current_version
