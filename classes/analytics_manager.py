from models.purchases import Purchase
from classes.progress_manager import ProgressManager
from classes.purchase_manager import ACTIVE


class AnalyticsManager:
    @staticmethod
    def course_stats(course):
        """Sales, revenue and the share of buyers who completed the course."""
        purchases = Purchase.query.filter_by(course_id=course.id, status=ACTIVE).all()
        completed = sum(
            1 for purchase in purchases
            if ProgressManager.course_progress(course.id, purchase.student_id)["is_completed"]
        )
        sales = len(purchases)
        return {
            "id": course.id,
            "title": course.title,
            "price": course.price,
            "sales": sales,
            "revenue": round(sum(purchase.price_paid for purchase in purchases), 2),
            "completion_rate": round(completed / sales * 100) if sales else 0,
        }

    @staticmethod
    def summary(courses):
        stats = [AnalyticsManager.course_stats(course) for course in courses]
        return {
            "total_revenue": round(sum(s["revenue"] for s in stats), 2),
            "total_sales": sum(s["sales"] for s in stats),
            "course_count": len(stats),
            "courses": stats,
        }
