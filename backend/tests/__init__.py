# Force SQLModel table registration at test discovery time
from app.models.workspace import Workspace  # noqa: F401
