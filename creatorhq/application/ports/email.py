from abc import ABC, abstractmethod


class EmailPort(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, html: str) -> bool:
        """Send a transactional email. Returns False when the provider rejected it."""
        raise NotImplementedError
