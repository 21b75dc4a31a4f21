"""
Question bank models: subjects, topics, subtopics and multiple-choice questions.
"""
import enum

from sqlalchemy import Boolean, Column, Integer, String, DateTime, Text, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from examprep.db.base import Base


class Difficulty(str, enum.Enum):
    """Difficulty tiers, in ascending order."""

    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class Subject(Base):
    """Subject model (Physics, Chemistry, Mathematics, Legal Reasoning...)."""

    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    topics = relationship("Topic", back_populates="subject", cascade="all, delete-orphan")


class Topic(Base):
    """Topic within a subject."""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)

    subject = relationship("Subject", back_populates="topics")
    subtopics = relationship("Subtopic", back_populates="topic", cascade="all, delete-orphan")
    questions = relationship("Question", back_populates="topic")


class Subtopic(Base):
    """Subtopic within a topic."""

    __tablename__ = "subtopics"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)

    topic = relationship("Topic", back_populates="subtopics")


class Question(Base):
    """Multiple-choice question in the bank."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    subtopic_id = Column(Integer, ForeignKey("subtopics.id", ondelete="SET NULL"), nullable=True, index=True)
    stem = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    difficulty = Column(SAEnum(Difficulty), nullable=False, default=Difficulty.MEDIUM, index=True)
    estimated_time = Column(Integer, nullable=True)  # seconds
    is_active = Column(Boolean, default=True)
    is_ai_generated = Column(Boolean, default=False)
    ai_prompt = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    topic = relationship("Topic", back_populates="questions")
    subtopic = relationship("Subtopic")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.option_order",
    )


class QuestionOption(Base):
    """Answer option of a question."""

    __tablename__ = "question_options"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False)
    option_order = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="options")
