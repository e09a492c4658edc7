"""Script-generation prompt construction (template version 1.0).

The prompt lists ordered artifacts (screenshots, terminal output) with their
narration position and size, unordered logs, and asks the model to answer
with a JSON object shaped like a Script minus projectId/createdAt.
"""

from proof_of_build.constants import DEFAULT_SCRIPT_LANGUAGE, DEFAULT_SCRIPT_TONE, SCRIPT_TONES
from proof_of_build.schemas import Artifact, ArtifactCollection

PROMPT_VERSION = "1.0"

_TASK_STEPS = (
    "Introduce the project briefly",
    "Walk through each screenshot/terminal output in order",
    "Explain what's happening at each step",
    "Highlight key features or achievements",
    "Conclude with a summary",
)


def _size_suffix(artifact: Artifact) -> str:
    return f" ({artifact.size} bytes)" if artifact.size else ""


def _ordered_lines(artifacts: tuple[Artifact, ...]) -> list[str]:
    lines = []
    for index, artifact in enumerate(artifacts):
        position = artifact.order if artifact.order is not None else index + 1
        lines.append(f"  {position}. {artifact.filename}{_size_suffix(artifact)}")
    return lines


def _artifact_section(artifacts: ArtifactCollection) -> str:
    parts: list[str] = []
    if artifacts.screenshots:
        parts.append(f"Screenshots ({len(artifacts.screenshots)}):")
        parts.extend(_ordered_lines(artifacts.screenshots))
    if artifacts.terminal:
        parts.append(f"Terminal Output ({len(artifacts.terminal)}):")
        parts.extend(_ordered_lines(artifacts.terminal))
    if artifacts.logs:
        parts.append(f"Log Files ({len(artifacts.logs)}):")
        parts.extend(f"  - {log.filename}{_size_suffix(log)}" for log in artifacts.logs)
    return "\n".join(parts) if parts else "(no artifacts)"


def build_script_prompt(
    project_id: str,
    artifacts: ArtifactCollection,
    *,
    tone: str | None = None,
    language: str | None = None,
) -> str:
    """Build the script-generation prompt for a project.

    Args:
        project_id: Project identifier (echoed into the prompt)
        artifacts: Artifacts from the manifest
        tone: One of SCRIPT_TONES (default: "professional")
        language: Narration language code (default: "en")

    Raises:
        ValueError: If tone is not one of SCRIPT_TONES
    """
    tone = tone or DEFAULT_SCRIPT_TONE
    language = language or DEFAULT_SCRIPT_LANGUAGE
    if tone not in SCRIPT_TONES:
        raise ValueError(f"Unsupported script tone: {tone}")

    steps = "\n".join(f"{number}. {step}" for number, step in enumerate(_TASK_STEPS, start=1))

    return f"""You are a technical narrator creating a video script for a development project demonstration.

PROJECT ID: {project_id}

ARTIFACTS PROVIDED:
{_artifact_section(artifacts)}

TASK:
Generate a narration script that explains what the developer built, following the order of screenshots and terminal output. The script should:
{steps}

TONE: {tone}
LANGUAGE: {language}

OUTPUT FORMAT:
Return a JSON object with this exact structure:
{{
  "segments": [
    {{
      "text": "Narration text for this segment",
      "startTime": 0.0,
      "duration": 5.0,
      "frameIndex": 0
    }}
  ],
  "totalDuration": 30.0,
  "metadata": {{
    "tone": "{tone}",
    "language": "{language}"
  }}
}}

RULES:
- Each segment should correspond to a screenshot or terminal output
- startTime is in seconds from the start of the video
- duration is in seconds for this segment
- frameIndex is the 0-based index of the screenshot (omit it when the segment has no screenshot)
- Keep each segment between 3-8 seconds of narration
- Total duration should typically be 30-120 seconds
- Use clear, concise language appropriate for the {tone} tone

Generate the script now:"""
