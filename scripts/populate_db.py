import os
import sys
import django
import random
from decimal import Decimal
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'campus_delivery.settings')
django.setup()

from delivery.models import Match, User
from delivery.services import matches, messaging, offers, orders, reviews

fake = Faker()

CAMPUS_SPOTS = [
    "Main Library", "Student Union", "Dorm A", "Dorm B", "Dorm C",
    "Science Hall", "Gym", "Dining Commons", "Bookstore", "Engineering Building",
]


def create_users(num_users=20):
    print(f"Creating {num_users} users...")
    users = []

    for _ in range(num_users):
        email = fake.unique.email()
        username = email.split('@')[0]
        user = User.objects.create_user(
            username=username,
            email=email,
            password='password123',
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            phone_number=fake.numerify('+1 ###-###-####'),
            university_name=fake.company(),
            bio=fake.sentence(),
        )
        users.append(user)

    print(f"Created {len(users)} users.")
    return users


def create_orders(users, num_orders=30):
    print(f"Creating {num_orders} orders...")
    created = []

    for _ in range(num_orders):
        pickup, dropoff = random.sample(CAMPUS_SPOTS, 2)
        order = orders.create_order(random.choice(users), {
            'description': fake.sentence(nb_words=8),
            'pickup_location': pickup,
            'dropoff_location': dropoff,
            'price_offered': Decimal(random.randint(300, 3000)) / 100,
        })
        created.append(order)

    print(f"Created {len(created)} orders.")
    return created


def create_offers(users, open_orders):
    print("Creating offers...")
    created = []

    for order in open_orders:
        couriers = [u for u in users if u.id != order.requester_id]
        for courier in random.sample(couriers, random.randint(0, 4)):
            offer = offers.create_offer(
                order.id,
                courier,
                order.price_offered + Decimal(random.randint(-100, 200)) / 100 + 1,
                note=fake.sentence(),
            )
            created.append(offer)

    print(f"Created {len(created)} offers.")
    return created


def create_matches(open_orders):
    print("Accepting offers...")
    created = []

    for order in open_orders:
        pending = list(order.offers.filter(status='pending'))
        if not pending or random.random() < 0.3:
            continue
        created.append(matches.accept_offer(random.choice(pending).id, order.requester))

    print(f"Created {len(created)} matches.")
    return created


def progress_matches(created_matches):
    print("Progressing matches...")
    completed = []

    for match in created_matches:
        messaging.send_message(match.id, match.courier, fake.sentence())
        messaging.send_message(match.id, match.requester, fake.sentence())

        outcome = random.choice(['pending', 'in_progress', 'delivered', 'completed', 'completed', 'cancelled'])
        if outcome == 'cancelled':
            matches.advance_match(match.id, random.choice([match.requester, match.courier]), Match.Status.CANCELLED)
            continue

        for target in ('in_progress', 'delivered', 'completed'):
            if outcome == 'pending':
                break
            actor = match.requester if target == 'completed' else match.courier
            match = matches.advance_match(match.id, actor, target)
            if target == outcome:
                break

        if match.status == Match.Status.COMPLETED:
            completed.append(match)

    print(f"Completed {len(completed)} matches.")
    return completed


def create_reviews(completed_matches):
    print("Creating reviews...")
    count = 0

    for match in completed_matches:
        for author in (match.requester, match.courier):
            if random.random() < 0.8:
                reviews.create_review(
                    match.id,
                    author,
                    None,
                    random.randint(3, 5),
                    comment=fake.paragraph(),
                )
                count += 1

    print(f"Created {count} reviews.")


def main():
    print("Starting database population...")

    users = create_users(num_users=20)
    open_orders = create_orders(users, num_orders=30)
    create_offers(users, open_orders)
    created_matches = create_matches(open_orders)
    completed = progress_matches(created_matches)
    create_reviews(completed)

    print("Database population completed successfully!")

if __name__ == '__main__':
    main()
