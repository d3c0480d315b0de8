from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    STAROSTA = "starosta"
    PARENT = "parent"

    @property
    def audience(self) -> str:
        """Announcement target group this role reads."""
        return _AUDIENCES[self]

    @property
    def is_pupil(self) -> bool:
        return self in (Role.STUDENT, Role.STAROSTA)


class AnnouncementTarget(str, Enum):
    ALL = "all"
    TEACHERS = "teachers"
    STUDENTS = "students"
    PARENTS = "parents"


_AUDIENCES = {
    Role.ADMIN: "admins",
    Role.TEACHER: AnnouncementTarget.TEACHERS.value,
    Role.STUDENT: AnnouncementTarget.STUDENTS.value,
    Role.STAROSTA: AnnouncementTarget.STUDENTS.value,
    Role.PARENT: AnnouncementTarget.PARENTS.value,
}

PUPIL_ROLES = (Role.STUDENT.value, Role.STAROSTA.value)


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    SICK = "sick"
    EXCUSED = "excused"
