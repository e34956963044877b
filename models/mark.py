from extensions import db


class Mark(db.Model):
    __tablename__ = "marks"

    mark_id = db.Column(db.Integer, primary_key=True)

    student_id = db.Column(
        db.Integer,
        db.ForeignKey("users.user_id"),
        nullable=False
    )

    subject = db.Column(db.String(100), nullable=False)
    class_name = db.Column(db.String(40), nullable=False)
    exam_period = db.Column(db.String(20), nullable=False)

    score = db.Column(db.Float, nullable=False)
    total_possible = db.Column(db.Float, nullable=False, default=100.0)
    grade = db.Column(db.String(1), nullable=False)
    remarks = db.Column(db.String(255))

    marked_by = db.Column(
        db.Integer,
        db.ForeignKey("users.user_id"),
        nullable=False
    )

    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        server_default=db.func.now(),
        onupdate=db.func.now()
    )

    marker = db.relationship("User", foreign_keys=[marked_by], lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("student_id", "subject", "exam_period", name="unique_student_subject_period"),
        db.CheckConstraint("total_possible > 0", name="ck_total_possible_positive"),
        db.CheckConstraint("score >= 0 AND score <= total_possible", name="ck_score_in_range"),
    )

    def to_dict(self):
        student = self.student
        return {
            "mark_id": self.mark_id,
            "student_id": self.student_id,
            "student_name": student.name if student else None,
            "admission_number": student.admission_number if student else None,
            "subject": self.subject,
            "class_name": self.class_name,
            "exam_period": self.exam_period,
            "score": self.score,
            "total_possible": self.total_possible,
            "grade": self.grade,
            "remarks": self.remarks,
            "marked_by": self.marked_by,
            "marked_by_name": self.marker.name if self.marker else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Mark student={self.student_id} {self.subject} {self.exam_period}>"
