"""Seed the post database with users, posts, comments and likes."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta
from app.database import engine, async_session, Base
from app.models import Comment, Post, PostLike, User
from app.security import create_access_token

TAGS = ["python", "fastapi", "travel", "food", "music", "photography",
        "fitness", "books", "gaming", "art", "coding", "weekend"]

async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_posts = 100 if small else 5000
    max_comments_per_post = 3 if small else 8

    print(f"Seeding: {num_users} users, {num_posts} posts")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                avatar=f"avatars/user_{i:04d}.png",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        total_comments = 0
        total_likes = 0
        now = datetime.now(timezone.utc)
        for i in range(num_posts):
            created = now - timedelta(minutes=random.randint(0, 60 * 24 * 365))
            post = Post(
                content=f"Post {i}: notes about {random.choice(TAGS)}. " * random.randint(1, 5),
                tags=random.sample(TAGS, k=random.randint(0, 3)),
                author_id=random.choice(users).id,
                created_at=created,
                updated_at=created,
            )
            # Newest comment first, the same order the API maintains.
            comments = []
            for _ in range(random.randint(0, max_comments_per_post)):
                comments.append(Comment(
                    text=f"Nice one! ({random.choice(TAGS)})",
                    author_id=random.choice(users).id,
                    created_at=created + timedelta(minutes=random.randint(1, 600)),
                ))
            post.comments = sorted(comments, key=lambda c: c.created_at, reverse=True)
            likers = random.sample(users, k=random.randint(0, min(10, num_users)))
            post.likes = [PostLike(user_id=u.id) for u in likers]
            total_comments += len(comments)
            total_likes += len(likers)
            session.add(post)

            if (i + 1) % 500 == 0:
                await session.flush()
                print(f"  {i + 1} posts created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")
    print(f"  Likes: {total_likes}")
    print("\nBearer tokens:")
    for user in users[:5]:
        print(f"  {user.username}: {create_access_token(user.id)}")


def main():
    parser = argparse.ArgumentParser(description="Seed the post database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
