TUTOR_SYSTEM_PROMPT = """You are a course tutor. Answer students' questions about their course using the course context provided.

ROLE: Explain clearly, check understanding, and point to the relevant part of the syllabus when it helps.

FORMAT:
- LaTeX: $...$ inline, $$...$$ display.
- Code: markdown blocks with language tags.
- No emojis."""

SUMMARY_SYSTEM_PROMPT = "You summarise study conversations for students."


def build_question_message(question: str, context: str | None) -> str:
    """Combine the course context and the student's question into one user turn."""
    course = (context or "").strip() or "General Chat"
    return f"Course context: {course}\n\nStudent question: {question}"


def build_summary_message(messages: str, chat_title: str | None) -> str:
    title_line = f"\nContext: {chat_title}\n" if chat_title else ""
    return (
        "Summarize this conversation concisely. Focus on main topics, key questions "
        "and answers, important concepts, and any action items. Use clear paragraphs "
        "with bullet points.\n\n"
        f"Conversation:\n{messages}\n"
        f"{title_line}\n"
        "Summary:"
    )
