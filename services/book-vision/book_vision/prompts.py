"""Prompts sent to the Gemini model.

The extraction prompt asks for a single JSON object with a fixed set of
keys; everything downstream (normalize/sanitize) relies on that shape.
"""

GRADE_LEVELS = ("K-2", "3-5", "6-8", "9-12", "Adult")

BOOK_COVER_PROMPT = """Analyze this book cover image and extract the following information in JSON format.
Be as accurate as possible and only extract information that is clearly visible.

Return ONLY a valid JSON object with this exact structure:
{
  "title": "exact book title as shown on cover",
  "author": "author name as shown on cover",
  "gradeLevel": "grade level if visible (one of: %(grade_levels)s)",
  "subject": "subject area if determinable (e.g., Math, Science, English, History, Fiction, Non-Fiction)",
  "series": "book series name if this appears to be part of a series",
  "publisher": "publisher name if visible",
  "isbn": "ISBN number if visible",
  "description": "brief description of what the book appears to be about based on cover",
  "confidence": 0.85
}

Rules:
- Use null for any field that cannot be determined from the image
- Set confidence between 0.1 and 1.0 based on image clarity and text visibility
- For gradeLevel, only use standard formats: %(grade_levels)s
- For subject, use common categories: Math, Science, English, History, Fiction, Non-Fiction, Art, Music, etc.
- Return ONLY the JSON object, no additional text or explanation. A ```json fence is allowed.""" % {
    "grade_levels": ", ".join(GRADE_LEVELS),
}

CONNECTION_TEST_PROMPT = (
    'Hello! This is a test message to verify the API connection. '
    'Please respond with "API connection successful".'
)

API_KEY_TEST_PROMPT = 'Test connection - please respond with "OK"'
