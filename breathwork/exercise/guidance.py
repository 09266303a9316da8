"""Static guidance texts used when generated guidance is unavailable."""

from __future__ import annotations

_FALLBACK_GUIDANCE: dict[str, str] = {
    "opening_preparation": (
        "welcome to your stress relief session. Find a comfortable position and allow yourself to settle in. "
        "Take a moment to notice how you're feeling right now, and know that you're taking a positive step "
        "for your well-being."
    ),
    "grounding_breathwork": (
        "let's begin with some gentle breathing. Breathe in slowly through your nose for four counts... "
        "hold for two... and exhale gently through your mouth for six counts. Feel yourself becoming more "
        "centered with each breath."
    ),
    "body_awareness": (
        "now let's scan through your body. Starting from the top of your head, notice any areas of tension. "
        "Allow your shoulders to drop, soften your jaw, and let any tightness melt away as you continue "
        "breathing deeply."
    ),
    "breathing_with_intention": (
        "focus on your breath as your anchor. With each inhale, imagine drawing in calm and peace. With each "
        "exhale, release any stress or tension you've been carrying. Your breath is your pathway to tranquility."
    ),
    "guided_visualization": (
        "imagine yourself in a peaceful place. Perhaps a quiet beach, a serene forest, or a cozy room filled "
        "with soft light. Feel the safety and calm of this space. You are exactly where you need to be."
    ),
    "deep_stillness": (
        "rest in this moment of stillness. There's nothing you need to do, nowhere you need to be. Simply "
        "allow yourself to be present, breathing naturally, feeling the peace that comes from within."
    ),
    "affirmations": (
        'you are strong, you are capable, and you are worthy of peace. Repeat to yourself: "I am calm, I am '
        'centered, I am at peace." Feel these words resonate within you.'
    ),
    "closing": (
        "as we come to the end of this session, take a moment to appreciate what you've given yourself. "
        "Carry this sense of calm with you as you return to your day. You have everything you need within you."
    ),
}

_DEFAULT_GUIDANCE = (
    "take a moment to breathe deeply and find your center. You are safe, you are calm, and you are "
    "exactly where you need to be."
)


def fallback_guidance(stage_key: str, user_name: str | None = None) -> str:
    """Return the canned guidance for a stage, addressed to the user when a name is known."""
    text = _FALLBACK_GUIDANCE.get(stage_key, _DEFAULT_GUIDANCE)
    if user_name:
        return f"{user_name}, {text}"
    return text[0].upper() + text[1:]
