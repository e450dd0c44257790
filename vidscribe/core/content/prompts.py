"""
Prompt templates for metadata and article generation.

The prompts are here, not in config, because they're core business logic.
Changing them changes what the product produces, and the JSON field names
they ask for must stay in sync with the parsers in orchestrator.py.
"""

from .models import References

METADATA_PROMPT_TEMPLATE = """You are a YouTube growth strategist who writes metadata that is accurate to the video and easy to discover.

# Task

Watch the video and write its YouTube metadata.

Video title: {title}
{instructions_block}
# Requirements

1. Three title variants, each 15-60 characters:
   - titleA: outcome or value focused
   - titleB: situation or pain-point focused
   - titleC: technique or trend focused
2. description: 2-4 short paragraphs. Open with the main benefit, summarize the key moments, end with a call to action. Include the main keywords naturally.
3. tags: 10-20 search tags, most specific first, no '#' prefix.

# Output format

Respond with a single JSON object with these fields:
- titleA: string
- titleB: string
- titleC: string
- description: string
- tags: array of strings"""


ARTICLE_PROMPT_TEMPLATE = """You are a technology content consultant who turns videos into practical, well-structured articles.

# Task

Analyse this video and write a professional article about it.

Video title: {title}
{instructions_block}
# Writing requirements

1. Explain how the product or technique solves a real problem.
2. Be precise and direct. Every paragraph should give the reader something usable.
3. Pull out the key highlights or steps and explain how and why they work.
4. Write flowing paragraphs. Avoid bullet points, numbered lists and tables in the article body.

# Structure

Titles: three variants of 15-60 characters
- titleA: outcome or value focused
- titleB: situation or pain-point focused
- titleC: technique or trend focused

Body (Markdown):
- Introduction of 100-150 words naming the reader's need
- 3-5 sections, each with a ## heading and narrative text
- Conclusion of about 100 words

SEO description: at most 150 characters, containing the main keyword.

Screenshots: 3-5 key frames from the video
- timestamps in mm:ss
- explain why each frame is worth showing

# Output format

Respond with a single JSON object with these fields:
- titleA: string
- titleB: string
- titleC: string
- article_text: string (Markdown)
- seo_description: string
- screenshots: array of objects with timestamp_seconds (string, mm:ss) and reason_for_screenshot (string)"""


JSON_ONLY_REMINDER = (
    "**Important: respond with valid JSON only. "
    "Do not include any text before or after the JSON object.**"
)


def _instructions_block(instructions: str) -> str:
    if not instructions or not instructions.strip():
        return ""
    return f"Additional instructions: {instructions.strip()}\n"


def build_metadata_prompt(title: str, instructions: str = "") -> str:
    """Prompt for the three-title / description / tags artifact."""
    return METADATA_PROMPT_TEMPLATE.format(
        title=title or "(untitled)",
        instructions_block=_instructions_block(instructions),
    )


def build_reference_manifest(references: References) -> str:
    """
    Describe supplied reference material so the model knows to use it.

    Uploaded files and reference videos are attached as parts of the
    request. Reference URLs are only listed here.
    """
    if references.is_empty:
        return ""

    sections: list[str] = []

    if references.uploaded_files:
        lines = [
            f"## Reference files\n\nThe user uploaded "
            f"{len(references.uploaded_files)} reference file(s):\n"
        ]
        for index, ref in enumerate(references.uploaded_files, start=1):
            label = ref.display_name or ref.uri
            lines.append(f"{index}. {label} ({ref.kind})")
        lines.append(
            "\nAnalyse these files in depth and combine their information "
            "with the video content."
        )
        sections.append("\n".join(lines))

    if references.reference_videos:
        sections.append(
            f"## Reference videos\n\n{len(references.reference_videos)} reference "
            "video(s) are attached after the main video. Integrate their "
            "facts, viewpoints and technical details into the article."
        )

    if references.reference_urls:
        lines = ["## Reference URLs\n\nRead and analyse the content at these addresses:\n"]
        for index, url in enumerate(references.reference_urls, start=1):
            lines.append(f"{index}. {url}")
        lines.append(
            "\nThey provide extra context, data or viewpoints. Work the "
            "important information into the article."
        )
        sections.append("\n".join(lines))

    sections.append(
        "**Integration:** combine the main video with all of the reference "
        "material above. Do not rely on only part of it."
    )
    return "\n\n".join(sections)


def build_article_prompt(
    title: str,
    instructions: str = "",
    references: References | None = None,
) -> str:
    """Prompt for the article artifact, with reference manifest and JSON reminder."""
    prompt = ARTICLE_PROMPT_TEMPLATE.format(
        title=title or "(untitled)",
        instructions_block=_instructions_block(instructions),
    )
    manifest = build_reference_manifest(references or References())
    if manifest:
        prompt = f"{prompt}\n\n{manifest}"
    return f"{prompt}\n\n{JSON_ONLY_REMINDER}"
