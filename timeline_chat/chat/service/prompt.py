from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProjectState:
    """Snapshot of the open project, as far as the assistant needs to know it."""
    media_count: int = 0
    other_resource_count: int = 0
    project_name: Optional[str] = None
    playing_video: Optional[str] = None


@dataclass(frozen=True)
class SelectionState:
    """What the user is currently looking at in the media browser."""
    active_tab: str = "media"


TIMELINE_ASSISTANT_SYSTEM_PROMPT = """You are the AI assistant of Timeline Studio, a professional video editor.

YOUR ROLE:
- Help users build Timeline projects from their media resources
- Analyse the available content and propose a sensible structure
- Automate clip placement and the application of effects
- Suggest improvements to quality and storytelling

CURRENT CONTEXT:
{context}

WORKING PRINCIPLES:
1. Always analyse the available resources before building a Timeline
2. Prefer adding resources to the project before placing them on the Timeline
3. Create a logical structure of sections and tracks
4. Respect the chronology and subject of the content
5. Suggest concrete actions, not general advice

Answer briefly and concretely. Focus on practical actions."""


class SystemPromptBuilder:
    def __init__(self, template: str = TIMELINE_ASSISTANT_SYSTEM_PROMPT):
        self.template = template

    def build(self, project: Optional[ProjectState] = None, selection: Optional[SelectionState] = None) -> str:
        if project is not None:
            lines = [
                f"- Available resources: {project.media_count} media files, "
                f"{project.other_resource_count} other resources",
            ]
        else:
            lines = ["- Available resources: not available"]

        lines.append(f"- Active browser tab: {selection.active_tab if selection is not None else 'not available'}")

        if project is not None:
            lines.append(f"- Current project: {project.project_name or 'none'}")
            player = f"playing {project.playing_video}" if project.playing_video else "idle"
            lines.append(f"- Player: {player}")
        else:
            lines.append("- Current project: not available")
            lines.append("- Player: not available")

        return self.template.format(context="\n".join(lines))
