"""Static metadata describing ExamRunner."""

APP_NAME = "ExamRunner"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "ExamRunner runs timed, proctored computer-based tests in the browser. "
    "Each attempt is shuffled per student, watched for focus loss, and graded "
    "into an overall score with per-category subscores."
)
