"""Database seeder for local development and pagination checks."""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from quillgraph.database import Base, async_session, engine
from quillgraph.models import Book, Comment, Post, Review, User
from quillgraph.security import hash_password

TOPICS = ["python", "graphql", "postgresql", "redis", "asyncio", "testing",
          "performance", "security", "fastapi", "sqlalchemy"]


async def seed(small: bool = False):
    num_users = 5 if small else 50
    num_posts = 50 if small else 5000
    num_books = 10 if small else 500

    print(f"Seeding: {num_users} users, {num_posts} posts, {num_books} books")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # One hash shared by every seeded user.
    password = hash_password("password123")
    now = datetime.now(timezone.utc)

    async with async_session() as session:
        users = [
            User(email=f"user_{i:04d}@example.com", name=f"User {i}", password=password)
            for i in range(num_users)
        ]
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(users)} users")

        posts = []
        for i in range(num_posts):
            topic = random.choice(TOPICS)
            posts.append(Post(
                title=f"Post {i}: notes on {topic}",
                content=f"Everything I learned about {topic}. " * 10,
                published=random.random() > 0.1,  # 90% published
                author_id=random.choice(users).id,
                created_at=now - timedelta(minutes=random.randint(0, 525600)),
            ))
        session.add_all(posts)
        await session.flush()
        print(f"  Created {len(posts)} posts")

        books = []
        for i in range(num_books):
            topic = random.choice(TOPICS)
            books.append(Book(
                title=f"Mastering {topic}, volume {i}",
                description=f"A practical book about {topic}.",
                published=random.random() > 0.2,
                author_id=random.choice(users).id,
                created_at=now - timedelta(minutes=random.randint(0, 525600)),
            ))
        session.add_all(books)
        await session.flush()
        print(f"  Created {len(books)} books")

        comments = [
            Comment(
                content=f"Useful post, thanks {random.choice(users).name}!",
                published=True,
                post_id=post.id,
                author_id=random.choice(users).id,
            )
            for post in posts
            for _ in range(random.randint(0, 3))
        ]
        reviews = [
            Review(
                comment=random.choice([None, "Loved it", "Too long", "Solid reference"]),
                rating=random.randint(1, 5),
                published=True,
                book_id=book.id,
                user_id=random.choice(users).id,
            )
            for book in books
            for _ in range(random.randint(0, 4))
        ]
        session.add_all(comments)
        session.add_all(reviews)
        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Comments: {len(comments)}")
    print(f"  Reviews: {len(reviews)}")
    print("  Every user logs in with password123")


def main():
    parser = argparse.ArgumentParser(description="Seed the quillgraph database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (50 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
