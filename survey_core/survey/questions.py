# =============================================================================
# survey_core/survey/questions.py
# Default ARTA Client Satisfaction Survey Questions
# =============================================================================

from typing import Any, Dict, List

LIKERT_CHOICES = [
    ("5", "Strongly Agree"),
    ("4", "Agree"),
    ("3", "Neither Agree nor Disagree"),
    ("2", "Disagree"),
    ("1", "Strongly Disagree"),
    ("na", "N/A"),
]

DEFAULT_QUESTIONS: List[Dict[str, Any]] = [
    {"id": "sqd0", "text": "I am satisfied with the service that I availed.",
     "type": "Likert", "category": "SQD", "order": 1},
    {"id": "sqd1", "text": "I spent a reasonable amount of time for my transaction.",
     "type": "Likert", "category": "SQD", "order": 2},
    {"id": "sqd2", "text": "The office followed the transaction's requirements and steps "
                           "based on the information provided.",
     "type": "Likert", "category": "SQD", "order": 3},
    {"id": "sqd3", "text": "The steps (including payment) I needed to do for my transaction "
                           "were easy and simple.",
     "type": "Likert", "category": "SQD", "order": 4},
    {"id": "sqd4", "text": "I easily found information about my transaction from the office "
                           "or its website.",
     "type": "Likert", "category": "SQD", "order": 5},
    {"id": "sqd5", "text": "I paid a reasonable amount of fees for my transaction. "
                           "(If service was free, mark N/A.)",
     "type": "Likert", "category": "SQD", "order": 6},
    {"id": "sqd6", "text": "I feel the office was fair to everyone, or \"walang palakasan\", "
                           "during my transaction.",
     "type": "Likert", "category": "SQD", "order": 7},
    {"id": "sqd7", "text": "I was treated courteously by the staff, and (if asked for help) "
                           "the staff was helpful.",
     "type": "Likert", "category": "SQD", "order": 8},
    {"id": "sqd8", "text": "I got what I needed from the government office, or (if denied) "
                           "denial of request was sufficiently explained to me.",
     "type": "Likert", "category": "SQD", "order": 9},
    {"id": "cc1", "text": "Which of the following best describes your awareness of a "
                          "Citizen's Charter?",
     "type": "Radio", "category": "CC", "order": 10,
     "choices": [
         "1. I know what a CC is and I saw this office's CC.",
         "2. I know what a CC is but I did NOT see this office's CC.",
         "3. I learned of the CC only when I saw this office's CC.",
         "4. I do not know what a CC is and I did not see one in this office.",
     ]},
    {"id": "cc2", "text": "If aware of CC, would you say that the CC of this office was...?",
     "type": "Radio", "category": "CC", "order": 11,
     "choices": [
         "1. Easy to see",
         "2. Somewhat easy to see",
         "3. Difficult to see",
         "4. Not visible at all",
         "5. N/A",
     ]},
    {"id": "cc3", "text": "If aware of CC (answered 1-3 in CC1), how much did the CC help "
                          "you in your transaction?",
     "type": "Radio", "category": "CC", "order": 12,
     "choices": [
         "1. Helped very much",
         "2. Somewhat helped",
         "3. Did not help",
         "4. N/A",
     ]},
]
