from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.users import User

from models.courses import Course
from models.chapters import Chapter
from models.chapter_progress import ChapterProgress

from models.quizzes import Quiz
from models.questions import Question
from models.quiz_attempts import QuizAttempt
from models.quiz_results import QuizResult
from models.quiz_answers import QuizAnswer

from models.promocodes import PromoCode
from models.purchases import Purchase

from models.balance_transactions import BalanceTransaction
