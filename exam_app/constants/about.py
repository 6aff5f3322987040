"""Static metadata describing ProctorQt."""

APP_NAME = "ProctorQt"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "ProctorQt runs timed, proctored multiple-choice exams. Students enter an access code, "
    "register, and answer in a locked full-screen window; the exam is submitted automatically "
    "when time runs out or full-screen mode is left."
)
