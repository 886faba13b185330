"""
Contact repository.
"""
from chathub.models.contact import Contact
from chathub.repositories.base import BaseRepository


class ContactRepository(BaseRepository[Contact]):
    model = Contact
    search_columns = ("id", "push_name")

    def page_order(self) -> list:
        # Dashboard lists contacts by display name
        return [Contact.push_name.asc(), Contact.id.asc()]
