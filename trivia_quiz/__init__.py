"""Private single-player trivia quizzes for Discord."""
