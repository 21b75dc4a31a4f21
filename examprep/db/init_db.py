"""
Database initialization and seeding.
"""
import logging

from sqlalchemy.orm import Session

from examprep.core.security import get_password_hash
from examprep.models.question import Difficulty, Question, QuestionOption, Subject, Subtopic, Topic
from examprep.models.user import User

logger = logging.getLogger(__name__)

# (stem, options, correct index, explanation, difficulty, estimated seconds)
SAMPLE_BANK = {
    "Physics": {
        "Kinematics": [
            ("A car moves 100 m east in 10 s. What is its average velocity?",
             ["10 m/s east", "10 m/s west", "1000 m/s east", "0.1 m/s east"], 0,
             "Average velocity = displacement / time = 100 m / 10 s = 10 m/s east.",
             Difficulty.EASY, 60),
            ("Which quantity is a scalar?",
             ["Velocity", "Displacement", "Speed", "Acceleration"], 2,
             "Speed has magnitude only; the others have direction.",
             Difficulty.EASY, 45),
            ("A ball is dropped from rest. Ignoring air resistance, its speed after 2 s is (g = 10 m/s^2):",
             ["5 m/s", "10 m/s", "20 m/s", "40 m/s"], 2,
             "v = gt = 10 x 2 = 20 m/s.",
             Difficulty.EASY, 60),
            ("A body starts from rest with uniform acceleration 2 m/s^2. Distance covered in the 5th second is:",
             ["9 m", "10 m", "25 m", "5 m"], 0,
             "s_n = u + a(2n - 1)/2 = 0 + 2 x 9 / 2 = 9 m.",
             Difficulty.MEDIUM, 90),
            ("A projectile is launched at 45 degrees with speed 20 m/s. Its range is (g = 10 m/s^2):",
             ["20 m", "40 m", "80 m", "10 m"], 1,
             "R = u^2 sin(2 theta) / g = 400 x 1 / 10 = 40 m.",
             Difficulty.MEDIUM, 90),
            ("Two cars move in the same direction at 60 km/h and 40 km/h. The relative speed of the faster car is:",
             ["100 km/h", "20 km/h", "60 km/h", "40 km/h"], 1,
             "Relative speed in the same direction is the difference: 60 - 40 = 20 km/h.",
             Difficulty.MEDIUM, 60),
            ("A particle's position is x = 4t^2 - 3t + 2 (SI units). Its acceleration at t = 2 s is:",
             ["8 m/s^2", "13 m/s^2", "4 m/s^2", "16 m/s^2"], 0,
             "a = d^2x/dt^2 = 8 m/s^2, independent of time.",
             Difficulty.HARD, 120),
            ("A stone thrown upward returns after 6 s. The maximum height reached is (g = 10 m/s^2):",
             ["30 m", "45 m", "60 m", "90 m"], 1,
             "Time to top is 3 s, so u = 30 m/s and H = u^2 / 2g = 900 / 20 = 45 m.",
             Difficulty.HARD, 120),
            ("A boat crosses a 100 m river flowing at 3 m/s, heading perpendicular at 4 m/s. Its drift downstream is:",
             ["75 m", "100 m", "133 m", "25 m"], 0,
             "Crossing time = 100 / 4 = 25 s; drift = 3 x 25 = 75 m.",
             Difficulty.HARD, 150),
        ],
        "Laws of Motion": [
            ("Newton's first law is also known as the law of:",
             ["Inertia", "Momentum", "Action and reaction", "Gravitation"], 0,
             "The first law describes inertia.",
             Difficulty.EASY, 30),
            ("A net force of 10 N acts on a 2 kg mass. Its acceleration is:",
             ["20 m/s^2", "5 m/s^2", "12 m/s^2", "0.2 m/s^2"], 1,
             "a = F / m = 10 / 2 = 5 m/s^2.",
             Difficulty.EASY, 45),
            ("A 5 kg block rests on a rough floor (mu_s = 0.4). The minimum horizontal force to move it is (g = 10 m/s^2):",
             ["2 N", "20 N", "50 N", "12.5 N"], 1,
             "F = mu_s m g = 0.4 x 5 x 10 = 20 N.",
             Difficulty.MEDIUM, 90),
            ("A person in a lift accelerating upward at 2 m/s^2 has mass 60 kg. The apparent weight is (g = 10 m/s^2):",
             ["480 N", "600 N", "720 N", "120 N"], 2,
             "N = m(g + a) = 60 x 12 = 720 N.",
             Difficulty.MEDIUM, 90),
            ("Two masses 3 kg and 2 kg hang over a frictionless pulley (Atwood machine). The acceleration is (g = 10 m/s^2):",
             ["2 m/s^2", "5 m/s^2", "1 m/s^2", "10 m/s^2"], 0,
             "a = (m1 - m2) g / (m1 + m2) = 1 x 10 / 5 = 2 m/s^2.",
             Difficulty.HARD, 120),
            ("A block slides down a 30 degree frictionless incline. Its acceleration is (g = 10 m/s^2):",
             ["10 m/s^2", "8.66 m/s^2", "5 m/s^2", "2.5 m/s^2"], 2,
             "a = g sin 30 = 5 m/s^2.",
             Difficulty.HARD, 90),
        ],
    },
    "Mathematics": {
        "Calculus": [
            ("The derivative of x^3 is:",
             ["x^2", "3x^2", "3x", "x^3 / 3"], 1,
             "d/dx x^n = n x^(n-1).",
             Difficulty.EASY, 30),
            ("The integral of 1/x dx is:",
             ["ln|x| + C", "x^2 / 2 + C", "-1/x^2 + C", "e^x + C"], 0,
             "The antiderivative of 1/x is ln|x|.",
             Difficulty.EASY, 30),
            ("The limit of sin(x)/x as x approaches 0 is:",
             ["0", "1", "Infinity", "Does not exist"], 1,
             "Standard limit.",
             Difficulty.MEDIUM, 45),
            ("The maximum value of f(x) = -x^2 + 4x + 1 is:",
             ["1", "4", "5", "3"], 2,
             "Vertex at x = 2, f(2) = -4 + 8 + 1 = 5.",
             Difficulty.MEDIUM, 90),
            ("The area bounded by y = x^2 and y = x is:",
             ["1/6", "1/3", "1/2", "1"], 0,
             "Integral from 0 to 1 of (x - x^2) dx = 1/2 - 1/3 = 1/6.",
             Difficulty.HARD, 150),
            ("If y = x^x, then dy/dx at x = 1 is:",
             ["0", "1", "e", "2"], 1,
             "dy/dx = x^x (1 + ln x); at x = 1 this is 1.",
             Difficulty.HARD, 120),
        ],
    },
}

SAMPLE_SUBTOPICS = {
    "Kinematics": ["Motion in a straight line", "Projectile motion"],
    "Laws of Motion": ["Friction", "Pulleys"],
    "Calculus": ["Differentiation", "Integration"],
}


def init_db(db: Session) -> None:
    """
    Initialize database with default data.

    Args:
        db: Database session
    """
    admin = db.query(User).filter(User.email == "admin@example.com").first()
    if not admin:
        admin = User(
            email="admin@example.com",
            username="admin",
            full_name="System Administrator",
            hashed_password=get_password_hash("admin123"),
            role="admin",
            is_active=True,
        )
        db.add(admin)
        db.commit()
        logger.info("Admin user created successfully")

    seed_question_bank(db)


def seed_question_bank(db: Session) -> None:
    """Insert the sample subjects, topics and questions if the bank is empty."""
    if db.query(Question).first():
        logger.info("Question bank already seeded, skipping")
        return

    count = 0
    for subject_name, topics in SAMPLE_BANK.items():
        subject = Subject(name=subject_name)
        db.add(subject)
        for topic_name, questions in topics.items():
            topic = Topic(name=topic_name)
            topic.subtopics = [Subtopic(name=name) for name in SAMPLE_SUBTOPICS.get(topic_name, [])]
            subject.topics.append(topic)
            for stem, options, correct, explanation, difficulty, seconds in questions:
                question = Question(
                    stem=stem,
                    explanation=explanation,
                    difficulty=difficulty,
                    estimated_time=seconds,
                    is_active=True,
                )
                question.options = [
                    QuestionOption(text=text, is_correct=(i == correct), option_order=i)
                    for i, text in enumerate(options)
                ]
                topic.questions.append(question)
                count += 1

    db.commit()
    logger.info(f"Seeded {count} sample questions")
