"""Equipment endpoints - inventory maintenance and lending history of one item"""

from fastapi import APIRouter, Depends, Response

from sports_lending.api.dependencies import get_inventory_manager, get_loan_manager
from sports_lending.api.v1.schemas import (
    EquipmentResponse,
    LoanHistoryResponse,
    LoanResponse,
    RegisterEquipmentRequest,
    UpdateEquipmentRequest,
)
from sports_lending.services.inventory import InventoryManager
from sports_lending.services.loans import LoanManager

router = APIRouter()


@router.post("/equipment", response_model=EquipmentResponse, status_code=201)
def register_equipment(request_body: RegisterEquipmentRequest, manager: InventoryManager = Depends(get_inventory_manager)):
    """
    Add an item to the inventory.

    Items cannot be registered as borrowed; that status is only set by lending.
    """
    item = manager.register_equipment(**request_body.model_dump())
    return EquipmentResponse.model_validate(item)


@router.get("/equipment/{equipment_id}", response_model=EquipmentResponse)
def get_equipment(equipment_id: str, manager: InventoryManager = Depends(get_inventory_manager)):
    return EquipmentResponse.model_validate(manager.get_equipment(equipment_id))


@router.patch("/equipment/{equipment_id}", response_model=EquipmentResponse)
def update_equipment(
    equipment_id: str,
    request_body: UpdateEquipmentRequest,
    manager: InventoryManager = Depends(get_inventory_manager),
):
    """Edit details or mark an item reserved, under repair, lost or damaged"""
    item = manager.update_equipment(equipment_id, **request_body.model_dump(exclude_unset=True))
    return EquipmentResponse.model_validate(item)


@router.delete("/equipment/{equipment_id}", status_code=204)
def delete_equipment(equipment_id: str, manager: InventoryManager = Depends(get_inventory_manager)):
    manager.delete_equipment(equipment_id)
    return Response(status_code=204)


@router.get("/equipment/{equipment_id}/loans", response_model=LoanHistoryResponse)
def get_equipment_loans(equipment_id: str, manager: LoanManager = Depends(get_loan_manager)):
    """
    Retrieve who borrowed an item, newest first.

    Returns:
        Loans inside the configured history retention window
    """
    loans = manager.equipment_history(equipment_id)
    return LoanHistoryResponse(loans=[LoanResponse.model_validate(loan) for loan in loans])
