# storygame/prompts.py
"""Prompt templates sent to the generation providers."""

OPENING_CONTEXT = (
    "You find yourself in a mysterious forest at dusk. The trees tower above you, "
    "their branches swaying gently in the breeze."
)
START_ACTION = "Game start"


def story_prompt(context: str, action: str) -> str:
    return f"""You are narrating an interactive story game.
Current story context: {context}
User just chose: {action}
Continue the story with 2-3 paragraphs based on this choice.
"""


def image_prompt(scene_description: str) -> str:
    return f"""Scene from interactive story game: {scene_description}
Detailed, dramatic lighting, cinematic composition, high quality
"""


def choices_prompt(scene_text: str) -> str:
    return f"""Based on this scene in our story:
"{scene_text}"
Generate 3 interesting and distinct choices for what the player might do next.
Format your response EXACTLY as following:
[
    "Choice 1",
    "Choice 2",
    "Choice 3"
]
Do not include any explanation or additional text outside the list of choices above.
"""
