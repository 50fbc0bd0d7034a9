from typing import List, Optional

from bucketmap_lib import CreateTime, Model, UpdateTime


class Person(Model, CreateTime, UpdateTime):
    name: str = ""
    active: bool = False


class Note(Model):
    title: str = ""
    tags: List[str] = []
    parent: Optional[str] = None


def save_people(db, path, *names):
    people = []
    for name in names:
        p = Person(name=name)
        db.save(path, p)
        people.append(p)
    return people
