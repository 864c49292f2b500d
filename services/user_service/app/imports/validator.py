"""Upload validation for bulk imports."""

from services.user_service.app.imports.artifact import UploadArtifact
from services.user_service.app.imports.errors import InvalidMediaType

DEFAULT_CSV_MEDIA_TYPE = "text/csv"


class UploadValidator:
    """Accepts only artifacts whose declared media type is exactly the CSV type.

    The declared type comes from the multipart parser; content is never
    inspected here.
    """

    def __init__(self, accepted_media_type: str = DEFAULT_CSV_MEDIA_TYPE):
        self.accepted_media_type = accepted_media_type

    def validate(self, artifact: UploadArtifact) -> UploadArtifact:
        """Return the artifact unchanged or raise InvalidMediaType."""
        if artifact.content_type != self.accepted_media_type:
            raise InvalidMediaType(artifact.content_type, self.accepted_media_type)
        return artifact
