from pydantic import BaseModel


class MessageModel(BaseModel):
    """
    Acknowledgement of an operation without a resource to return.
    """

    message: str
