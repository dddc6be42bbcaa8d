"""Database seeder for local forum development."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from sqlalchemy import insert

from forum.database import engine, async_session, Base
from forum.models import Comment, Post, PostType, User, comment_likes, post_likes
from forum.security import hash_password

HASHTAGS = ["#movies", "#books", "#music", "#travel", "#food", "#games",
            "#tech", "#sports", "#art", "#science"]

SEED_PASSWORD = "forum-seed-password"


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_posts = 100 if small else 5000
    max_comments_per_post = 2 if small else 5

    print(f"Seeding: {num_users} users, {num_posts} posts, up to {num_posts * max_comments_per_post} comments")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    password_hash = hash_password(SEED_PASSWORD)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                display_name=f"User {i}",
                avatar=f"https://cdn.example.com/avatars/{i}.png",
                password_hash=password_hash,
                # First account administers the forum
                is_admin=(i == 0),
            )
            session.add(user)
            users.append(user)
        await session.flush()
        user_ids = [u.id for u in users]
        print(f"  Created {len(users)} users (admin: {users[0].username} / {SEED_PASSWORD})")

        batch_size = 500
        total_comments = 0
        total_likes = 0
        for batch_start in range(0, num_posts, batch_size):
            batch_end = min(batch_start + batch_size, num_posts)
            posts = []
            for i in range(batch_start, batch_end):
                created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
                post = Post(
                    title=f"Post {i}: thoughts on {random.choice(HASHTAGS)[1:]}",
                    content=f"This is the body of post {i}. " * 10,
                    hashtag=random.choice(HASHTAGS),
                    post_type=PostType.USER_POST.value,
                    view_count=random.randint(0, 5000),
                    visible=random.random() > 0.05,
                    created_at=created,
                    author_id=random.choice(user_ids),
                )
                session.add(post)
                posts.append(post)
            await session.flush()

            comments = []
            like_rows = []
            for post in posts:
                for liker in {random.choice(user_ids) for _ in range(random.randint(0, 5))}:
                    like_rows.append({"post_id": post.id, "user_id": liker})
                for _ in range(random.randint(0, max_comments_per_post)):
                    comment = Comment(
                        text=f"Reply to post {post.id} from the seeder.",
                        author_id=random.choice(user_ids),
                        post_id=post.id,
                    )
                    session.add(comment)
                    comments.append(comment)
            await session.flush()
            total_comments += len(comments)

            if like_rows:
                await session.execute(insert(post_likes), like_rows)
                total_likes += len(like_rows)
            comment_like_rows = [
                {"comment_id": c.id, "user_id": random.choice(user_ids)}
                for c in comments
                if random.random() > 0.5
            ]
            if comment_like_rows:
                await session.execute(insert(comment_likes), comment_like_rows)
                total_likes += len(comment_like_rows)

            print(f"  Batch {batch_start}-{batch_end}: posts created")

        for resource_id in ("tt0133093", "tt0120737", "tt0816692"):
            session.add(Post(post_type=PostType.MOVIE_POST.value, resource_id=resource_id))

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Posts: {num_posts} (+3 movie posts)")
    print(f"  Comments: {total_comments}")
    print(f"  Likes: {total_likes}")


def main():
    parser = argparse.ArgumentParser(description="Seed the forum database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
