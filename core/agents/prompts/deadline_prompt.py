"""Prompt Template for the Deadline Resolver."""

from datetime import date

NO_DATE_TOKEN = "NO_DATE"

DEADLINE_PROMPT_TEMPLATE = """Extract the actual deadline date from the following contract deadline information.
Return ONLY a valid date in YYYY-MM-DD format. If no specific date is found, return "{no_date_token}".

Today's date: {today}

Deadline information: "{deadline_text}"

Rules:
- Look for specific dates, deadlines, due dates, expiration dates
- Convert relative dates (e.g., "30 days from signing") to actual dates counted from today's date
- Handle various date formats and convert to YYYY-MM-DD
- If multiple dates are found, return the most critical deadline
- If there is no specific date, return "{no_date_token}"

Response format: YYYY-MM-DD or {no_date_token}
"""


def format_deadline_prompt(deadline_text: str, today: date) -> str:
    return DEADLINE_PROMPT_TEMPLATE.format(
        deadline_text=deadline_text,
        today=today.isoformat(),
        no_date_token=NO_DATE_TOKEN,
    )
