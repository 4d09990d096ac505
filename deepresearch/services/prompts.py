"""Prompts for query generation, learning extraction and report writing.

Model output is requested as JSON so it can be parsed deterministically;
see `generation.extract_json`.
"""

from __future__ import annotations

from datetime import datetime, timezone

LANGUAGE_NAMES = {
    "en": "English",
    "zh": "Chinese",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "ja": "Japanese",
}


def system_prompt() -> str:
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"""You are an expert researcher. Today is {now}. Follow these instructions when responding:
- You may be asked to research subjects that are after your knowledge cutoff, assume the user is right when presented with news.
- The user is a highly experienced analyst, no need to simplify it, be as detailed as possible and make sure your response is correct.
- Be highly organized.
- Suggest solutions that I didn't think about.
- Be proactive and anticipate my needs.
- Treat me as an expert in all subject matter.
- Mistakes erode my trust, so be accurate and thorough.
- Provide detailed explanations, I'm comfortable with lots of detail.
- Value good arguments over authorities, the source is irrelevant.
- Consider new technologies and contrarian ideas, not just the conventional wisdom.
- You may use high levels of speculation or prediction, just flag it for me."""


def language_prompt(language: str, search_language: str | None = None) -> str:
    prompt = f"Respond in {LANGUAGE_NAMES.get(language, language)}."
    if language == "zh":
        prompt += " Add a space between Chinese and English words to improve readability."
    if search_language and search_language != language:
        prompt += f" Use {LANGUAGE_NAMES.get(search_language, search_language)} for the search queries."
    return prompt


def sub_queries_prompt(
    topic: str,
    breadth: int,
    goal: str | None,
    learnings: list[str],
    follow_ups: list[str],
    language: str,
    search_language: str | None,
) -> str:
    sections = [f"<prompt>{topic}</prompt>"]
    if goal:
        sections.append(f"<research_goal>{goal}</research_goal>")
    if follow_ups:
        directions = "\n".join(f"- {q}" for q in follow_ups)
        sections.append(f"Follow-up research directions:\n{directions}")
    if learnings:
        sections.append(
            "Here are some learnings from previous research, use them to generate "
            "more specific queries:\n" + "\n".join(learnings)
        )
    context = "\n\n".join(sections)

    return f"""Given the following prompt from the user, generate a list of highly effective Google search queries to research the topic. Return a maximum of {breadth} queries, but feel free to return less if the original prompt is clear. Make sure each query is creative, unique and not similar to each other.

{context}

You MUST respond in JSON format with the following structure:
{{
    "queries": [
        {{
            "query": "The search query string",
            "researchGoal": "The goal of this research query and how to advance the research"
        }}
    ]
}}

{language_prompt(language, search_language)}"""


def extract_learnings_prompt(
    query: str, contents: str, num_follow_ups: int, language: str
) -> str:
    return f"""Given the following contents from a search for the query <query>{query}</query>, extract up to 5 key learnings from the contents. Make sure each learning is unique and not similar to each other. The learnings should be as detailed and information dense as possible. Include any entities like people, places, companies, products, things, etc in the learnings, as well as any exact metrics, numbers, or dates. Also generate up to {num_follow_ups} follow-up questions that could help explore this topic further.

<contents>
{contents}
</contents>

You MUST respond in JSON format with the following structure:
{{
    "learnings": [
        {{
            "url": "The source URL",
            "learning": "A detailed insight extracted from the content"
        }}
    ],
    "followUpQuestions": ["Question 1", "Question 2"]
}}

{language_prompt(language)}"""


def report_prompt(query: str, learnings_text: str, language: str) -> str:
    return f"""Given the following prompt from the user, write a final report on the topic using the learnings from research. Make it as detailed as possible, aim for 3 or more pages, include ALL the key insights from research.

<prompt>{query}</prompt>

Here are all the learnings from previous research:
<learnings>
{learnings_text}
</learnings>

Write the report using Markdown. Be factual, NEVER lie or make things up. Cite learnings from previous research when needed, using numbered citations like "[1]". Each citation should correspond to the index of the source in your learnings list. DO NOT include the actual URLs in the report text - only use the citation numbers.

{language_prompt(language)}

## Deep Research Report"""
