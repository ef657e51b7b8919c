from typing import List

from pydantic import BaseModel

from appcatalog.models.blocks import ContentBlock


class DetailsResponse(BaseModel):
    blocks: List[ContentBlock] = []
