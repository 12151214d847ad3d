"""Static metadata describing ExamQuest."""

APP_NAME = "ExamQuest"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "ExamQuest runs timed exam sessions for students: it loads an exam's questions, "
    "counts down the clock, scores the answers and awards points and levels."
)
