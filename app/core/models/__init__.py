from app.core.models.school import School
from app.core.models.class_model import SchoolClass, class_students
from app.core.models.subject import Subject, teacher_subjects
from app.core.models.schedule import Schedule
from app.core.models.attendance import Attendance
from app.core.models.grade import Grade
from app.core.models.homework import Homework
from app.core.models.announcement import Announcement
from app.core.models.parent_student import ParentStudent

__all__ = [
    "School",
    "SchoolClass",
    "class_students",
    "Subject",
    "teacher_subjects",
    "Schedule",
    "Attendance",
    "Grade",
    "Homework",
    "Announcement",
    "ParentStudent",
]
