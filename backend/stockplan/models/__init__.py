"""Database models"""
from stockplan.models.product import Material, Product, Warehouse
from stockplan.models.bom import BOMHeader, BOMItem
from stockplan.models.inventory import Inventory, InventoryTransaction
from stockplan.models.mrp import MRPRun, MRPResult
from stockplan.models.purchase_order import PurchaseRequisition, PurchaseOrder, PurchaseOrderItem
from stockplan.models.work_order import WorkOrder, WorkOrderMaterial, WorkOrderReport
from stockplan.models.sales_order import SalesOrder, SalesOrderItem

__all__ = [
    "Material",
    "Product",
    "Warehouse",
    "BOMHeader",
    "BOMItem",
    "Inventory",
    "InventoryTransaction",
    "MRPRun",
    "MRPResult",
    "PurchaseRequisition",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "WorkOrder",
    "WorkOrderMaterial",
    "WorkOrderReport",
    "SalesOrder",
    "SalesOrderItem",
]
