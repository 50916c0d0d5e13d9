"""Example usage of the mini_record library."""

from pathlib import Path

from mini_record import Record, Schema

# Declare record types using the DSL
types = """
User {
    name: TEXT,
    email: TEXT,
    has_many Post,
    before_save normalize_email,
    after_save announce
}

Post {
    title: TEXT,
    content: TEXT,
    belongs_to User
}
"""


class User(Record):
    def normalize_email(self):
        if self.email:
            self.email = self.email.strip().lower()

    def announce(self):
        print(f"  Saved user {self.id}: {self.name} <{self.email}>")


# Write the declarations to a file and pick a data directory for storage
schema_path = Path("./blog.schema")
schema_path.write_text(types)
data_dir = Path("./db_data")

with Schema.load(schema_path, data_dir, record_classes={"User": User}) as schema:
    users = schema.model("User")
    posts = schema.model("Post")

    users.create_table()
    posts.create_table()

    print("Creating users...")
    for index in range(5):
        users.create(name=f"John {index} Doe", email=f"John{index}@Example.com")

    last_user = users.last()

    post = posts.new()
    post.title = "Mini ORM"
    post.content = "ORM with CSV"
    post.user = last_user
    post.save()

    author = post.user

    draft = author.posts.new(title="Associations", content="Checking new and save")
    draft.save()

    author.posts.create(title="Associations 2", content="Checking create")

    print("\nAll posts:")
    for p in posts.all():
        print(f"  {p!r}")

    print(f"\nPosts by {author.name}:")
    for p in author.posts:
        print(f"  [{p.id}] {p.title}")

    print(f"\nFiles created in {data_dir}:")
    for f in sorted(data_dir.iterdir()):
        print(f"  {f.name} ({f.stat().st_size} bytes)")

    print("\nInspect the tables with:")
    print(f"  mini-record-dump {schema_path} {data_dir}")
