from idverify import create_app
from idverify.errors import StoreError
from idverify.models import Employee
from idverify.storage import get_store
from idverify.utils import utcnow
from datetime import timedelta
import os

app = create_app()


def init_store():
    """Make sure admin credentials exist and optionally add sample records (idempotent)."""
    store = get_store()
    try:
        settings = store.get_admin_settings()
    except StoreError as e:
        # Logins stay closed until the credentials can be read
        print(f"Record store: {store.name}, admin settings unavailable: {e}")
        return
    print(f"Record store: {store.name}, admin user: {settings.username}")

    if os.environ.get('SEED_SAMPLE_DATA') == '1':
        add_sample_data(store)


def add_sample_data(store):
    """Add sample employees for testing (only when the store is empty)."""
    if store.list():
        print("Store already has records, skipping sample data.")
        return

    today = utcnow().date()
    employees_data = [
        {
            "name": "Alice Johnson",
            "emp_number": "2024-CS-001",
            "designation": "Lecturer",
            "department": "Computer Science",
            "valid_till": (today + timedelta(days=365)).isoformat(),
        },
        {
            "name": "Bob Smith",
            "emp_number": "2024-BIO-042",
            "designation": "Lab Assistant",
            "department": "Biology",
            "valid_till": (today - timedelta(days=30)).isoformat(),
            "status": "suspended",
        },
    ]

    for data in employees_data:
        try:
            record_id = store.create(Employee(**data))
            print(f"Sample employee {data['name']} -> {record_id}")
        except StoreError as e:
            print(f"Could not add sample employee {data['name']}: {e}")


# Ensure admin credentials exist whenever the app starts (e.g. under Gunicorn)
with app.app_context():
    init_store()


if __name__ == "__main__":
    # Bind to 0.0.0.0 to accept connections from outside the container
    port = int(os.environ.get('PORT', 5051))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG') == '1')
