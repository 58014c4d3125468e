# academy/data/bonus_tasks.py
# Static catalog of bonus tasks. Task ids are the idempotence key for
# completions, so never renumber an existing entry.

bonus_tasks = [
    {
        "id": 1,
        "title": "Daily reading",
        "description": "Read a book for 30 minutes",
        "points": 10,
        "type": "daily",
        "category": "reading",
        "difficulty": "easy",
        "time_limit_hours": 24,
        "requirements": ["Read for at least 30 minutes", "Write a short summary of the book"],
    },
    {
        "id": 2,
        "title": "Extra practice",
        "description": "Solve 5 additional problems",
        "points": 25,
        "type": "weekly",
        "category": "practice",
        "difficulty": "medium",
        "time_limit_hours": 7 * 24,
        "requirements": ["Solve 5 problems", "Explain the solution process"],
    },
    {
        "id": 3,
        "title": "Group helper",
        "description": "Help a classmate",
        "points": 15,
        "type": "social",
        "category": "teamwork",
        "difficulty": "easy",
        "time_limit_hours": 3 * 24,
        "requirements": ["Help a classmate", "Get the teacher's confirmation"],
    },
    {
        "id": 4,
        "title": "Creative project",
        "description": "Prepare a presentation on the subject",
        "points": 50,
        "type": "project",
        "category": "creativity",
        "difficulty": "hard",
        "time_limit_hours": 14 * 24,
        "requirements": ["10-slide presentation", "At least 3 sources", "Practical examples"],
    },
    {
        "id": 5,
        "title": "Lab experiment",
        "description": "Run a safe experiment at home",
        "points": 30,
        "type": "experiment",
        "category": "science",
        "difficulty": "medium",
        "time_limit_hours": 5 * 24,
        "requirements": ["Follow the safety rules", "Document the results", "Video or photo report"],
    },
    {
        "id": 6,
        "title": "Math olympiad preparation",
        "description": "Solve olympiad problems",
        "points": 40,
        "type": "competition",
        "category": "mathematics",
        "difficulty": "hard",
        "time_limit_hours": 10 * 24,
        "requirements": ["20 olympiad problems", "Analyse the solution strategies"],
    },
    {
        "id": 7,
        "title": "Ecology project",
        "description": "An environmental protection project",
        "points": 35,
        "type": "environmental",
        "category": "ecology",
        "difficulty": "medium",
        "time_limit_hours": 7 * 24,
        "requirements": ["Identify a problem", "Propose a solution", "Plan of practical steps"],
    },
    {
        "id": 8,
        "title": "Language learning",
        "description": "Learn 50 new words",
        "points": 20,
        "type": "language",
        "category": "linguistics",
        "difficulty": "easy",
        "time_limit_hours": 7 * 24,
        "requirements": ["50 new words", "A sentence with each word", "Pronunciation practice"],
    },
    {
        "id": 9,
        "title": "Grammar quiz",
        "description": "Pass an online grammar quiz with at least 80%",
        "points": 15,
        "type": "weekly",
        "category": "linguistics",
        "difficulty": "easy",
        "time_limit_hours": 7 * 24,
        "requirements": ["Score 80% or higher", "Screenshot of the result"],
    },
    {
        "id": 10,
        "title": "Public speaking",
        "description": "Give a 3-minute talk in front of the class",
        "points": 30,
        "type": "social",
        "category": "communication",
        "difficulty": "medium",
        "time_limit_hours": 7 * 24,
        "requirements": ["Prepare an outline", "Speak for at least 3 minutes", "Answer two questions"],
    },
    {
        "id": 11,
        "title": "Essay writing",
        "description": "Write a 300-word essay on a given topic",
        "points": 25,
        "type": "project",
        "category": "writing",
        "difficulty": "medium",
        "time_limit_hours": 5 * 24,
        "requirements": ["At least 300 words", "Clear introduction and conclusion"],
    },
    {
        "id": 12,
        "title": "Listening practice",
        "description": "Listen to a podcast episode and summarise it",
        "points": 20,
        "type": "daily",
        "category": "listening",
        "difficulty": "easy",
        "time_limit_hours": 48,
        "requirements": ["Episode of at least 15 minutes", "Five key points in writing"],
    },
]

bonus_tasks_by_id = {task["id"]: task for task in bonus_tasks}

# Completion count -> achievement awarded when the count is reached exactly
achievement_milestones = {
    1: ("First bonus task", "You successfully completed your first bonus task!"),
    5: ("Active learner", "You completed 5 bonus tasks!"),
    10: ("Bonus master", "You completed 10 bonus tasks!"),
}
