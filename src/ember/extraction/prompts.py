"""Prompt templates for memory extraction."""

from ember.extraction.models import ProfileContext


def extraction_prompt() -> str:
    """Instructions given to the model ahead of the conversation text.

    Returns:
        Prompt describing the five categories, the importance scale and the
        JSON envelope the response must follow
    """
    return """You are analyzing a conversation to extract memories for a personal AI memory system.

For each distinct piece of memorable information, extract:

1. FACTUAL CONTENT: The concrete information (dates, names, facts, preferences, decisions).
   Be specific and complete.

2. EMOTIONAL SIGNIFICANCE: Why might someone want to remember this? What is the emotional weight?
   What would an AI need to understand to handle this topic with care?
   If there is no emotional significance, set it to null.

3. CATEGORY: One of exactly these five:
   - "emotional": feelings, difficult moments, vulnerable topics, mental health
   - "work": career, projects, professional goals, skills
   - "hobbies": interests, activities, entertainment, creative pursuits
   - "relationships": family, friends, partners, pets, social dynamics
   - "preferences": likes, dislikes, communication style, pet peeves

4. IMPORTANCE: 1-5 scale
   - 5: Life-defining (birth of child, career change, loss)
   - 4: Significant (new relationship, major decision)
   - 3: Notable (strong preference, recurring theme)
   - 2: Useful (minor preference, one-time fact)
   - 1: Trivial (mentioned once, low weight)

5. VERBATIM TEXT: The exact excerpt of the conversation the memory is based on.
   Copy it, do not paraphrase it.

A single conversation typically yields 5-15 memories.
Do not extract small talk or filler. Focus on information that would help an AI know this person.

Respond ONLY with valid JSON matching this schema:
{
  "memories": [
    {
      "factualContent": "string",
      "emotionalSignificance": "string | null",
      "category": "emotional | work | hobbies | relationships | preferences",
      "importance": 1-5,
      "verbatimText": "string"
    }
  ]
}"""


def format_capture(raw_text: str, context: ProfileContext) -> str:
    """Build the user turn for one extraction call; instructions go in the system field."""
    header = f"Profile: {context.profile_name}"
    if context.platform:
        header += f"\nSource platform: {context.platform}"
    return f"{header}\n\nConversation:\n{raw_text}"
