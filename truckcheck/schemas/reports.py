from pydantic import BaseModel, Field
from typing import List, Optional, Union, Dict, Literal
from datetime import datetime


# --- DAMAGE MAP ---
class DamagePoint(BaseModel):
    id: str
    # Percent offsets into the reference truck image (0-100), not pixels
    x: float
    y: float
    description: str = ""
    severity: Literal["low", "medium", "high"] = "medium"
    images: List[str] = Field(default_factory=list)


# --- REPORT ---
class ReportCreate(BaseModel):
    driver_name: str = Field(alias="driverName")
    truck_number: str = Field(alias="truckNumber")
    date: str
    damage_points: List[DamagePoint] = Field(default_factory=list, alias="damagePoints")
    inspection_values: Dict[int, bool] = Field(default_factory=dict, alias="inspectionValues")
    tool_values: Dict[int, int] = Field(default_factory=dict, alias="toolValues")
    tool_images: Dict[int, List[str]] = Field(default_factory=dict, alias="toolImages")

    driver_signature: str = Field("", alias="driverSignature")
    equipment_manager_signature: str = Field("", alias="equipmentManagerSignature")
    logistics_manager_signature: str = Field("", alias="logisticsManagerSignature")
    warehouse_manager_signature: str = Field("", alias="warehouseManagerSignature")

    class Config:
        populate_by_name = True


class Report(ReportCreate):
    """A stored report. Serialized sub-fields that no longer decode keep their raw text."""
    id: int
    damage_points: Union[List[DamagePoint], str, None] = Field(default_factory=list, alias="damagePoints")
    inspection_values: Union[Dict[int, bool], str, None] = Field(default_factory=dict, alias="inspectionValues")
    tool_values: Union[Dict[int, int], str, None] = Field(default_factory=dict, alias="toolValues")
    tool_images: Union[Dict[int, List[str]], str, None] = Field(default_factory=dict, alias="toolImages")

    driver_signature: Optional[str] = Field("", alias="driverSignature")
    equipment_manager_signature: Optional[str] = Field("", alias="equipmentManagerSignature")
    logistics_manager_signature: Optional[str] = Field("", alias="logisticsManagerSignature")
    warehouse_manager_signature: Optional[str] = Field("", alias="warehouseManagerSignature")

    created_at: Optional[datetime] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True
        from_attributes = True


class ReportCreated(BaseModel):
    success: bool = True
    id: int


class ErrorOut(BaseModel):
    success: bool = False
    error: str
