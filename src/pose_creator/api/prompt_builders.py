"""
Prompt builders for the describe and render Gemini calls.

The wording here is tuning, not a contract. The only phrases the rest of the
code depends on are the two error tokens the render prompt asks the model to
answer with.
"""

from ..core.models import MODE_IMAGE, RenderSignal


def build_describe_image_prompt() -> str:
    """Prompt sent alongside a pose reference image."""
    return (
        "Look at the attached image and describe the pose of the person in it "
        "in one short, neutral sentence. Describe only how the body is positioned "
        "(limbs, torso, head, viewing angle). Do not mention clothing, identity, "
        "art style or background. Example: 'A person standing with arms crossed.'"
    )


def build_describe_text_prompt(user_text: str) -> str:
    """
    Prompt that rewrites free-form user input into a canonical pose sentence.

    Args:
        user_text: Trimmed text the user typed.
    """
    return (
        "Rewrite the following request as one short, neutral sentence that "
        "describes only the character's pose and viewing angle. "
        "Example: 'A character is doing push-ups, seen from the side.'\n\n"
        f'User input: "{user_text}"'
    )


def _identity_rules() -> str:
    return (
        "IDENTITY LOCK: The FIRST image is the base character (Rex). Keep the face, "
        "outfit, art style, colors, proportions, line weight and lighting exactly as "
        "they are. Only the pose may change."
    )


def _background_rules() -> str:
    return (
        "OUTPUT: A single high-quality PNG of the character on a plain pure white "
        "(#FFFFFF) background. No scenery, props, gradients, shadows or transparency."
    )


def build_render_prompt(mode: str, description: str) -> str:
    """
    Build the instruction text for a render call.

    Args:
        mode: "text" or "image".
        description: The confirmed pose description.

    Returns:
        The prompt text appended after the image parts.
    """
    if mode == MODE_IMAGE:
        return "\n\n".join([
            "You are a precise pose-transfer artist. Move the base character into the "
            "pose shown in the reference image.",
            _identity_rules(),
            "POSE SOURCE: The SECOND image is only a pose reference. Read its skeleton "
            "(joint positions and limb angles) and ignore its style, clothing, colors "
            "and identity. Copy the pose exactly, even if it looks awkward or "
            "unbalanced. Do not correct it.",
            "DESCRIPTION: Use the pose description below to confirm the pose and apply "
            "any small modifiers, after the pose has been copied.",
            _background_rules(),
            "ERRORS: If the reference image has no clear human-like figure, reply with "
            f"only the text {RenderSignal.POSE_DETECTION_FAILED.value}. If it shows more "
            f"than one person, reply with only the text "
            f"{RenderSignal.MULTIPLE_PEOPLE_DETECTED.value}. Do not generate an image in "
            "either case.",
            f'Pose description: "{description}"',
        ])

    return "\n\n".join([
        "You are an expert character artist. Draw the base character in a new pose.",
        _identity_rules(),
        "POSE SOURCE: The pose description below is the only source for the new pose.",
        _background_rules(),
        f'Pose description: "{description}"',
    ])
