from pydantic import AliasGenerator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Accept both "parent_id" and "parentId" on input, always answer in snake_case
camel_input = AliasGenerator(validation_alias=to_camel)


class RequestModel(BaseModel):
    """
    Base of the bodies sent by clients.

    Fields are read in snake_case or camelCase. Unknown fields are rejected, a misspelled field is never silently ignored.
    """

    model_config = ConfigDict(
        alias_generator=camel_input,
        extra="forbid",
        populate_by_name=True,
    )
