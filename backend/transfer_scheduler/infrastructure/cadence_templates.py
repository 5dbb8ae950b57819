"""Cadence Templates - scripts and transactions sent to the Flow network, plus JSON-Cadence codecs.

Invariants:
    - Templates are plain str.format templates; contract/service addresses are the only
      substitutions, user data always travels as JSON-Cadence arguments
    - UFix64 arguments are rendered with exactly 8 fractional digits
    - decode_cadence maps JSON-Cadence values to Python (Decimal for fixed point,
      int for integers, dict for dictionaries and composites, None for nil)
"""

from decimal import Decimal

from transfer_scheduler.core.transfer_rules import format_amount


AUTHORIZATION_STATUS_SCRIPT = """
import ScheduledTransfer from {contract}

access(all) fun main(userAddress: Address): {{String: AnyStruct}} {{
  let userAccount = getAccount(userAddress)

  let authManagerRef = userAccount.getCapability<&ScheduledTransfer.AuthorizationManager{{ScheduledTransfer.AuthorizationPublic}}>(
    ScheduledTransfer.AuthorizationPublicPath
  ).borrow()

  if authManagerRef == nil {{
    return {{
      "hasAuthorization": false,
      "isValid": false,
      "maxAmount": 0.0,
      "expiryDate": 0.0,
      "message": "No authorization manager found"
    }}
  }}

  let isValid = authManagerRef!.isValid()

  return {{
    "hasAuthorization": true,
    "isValid": isValid,
    "authId": authManagerRef!.getAuthId(),
    "maxAmount": authManagerRef!.getMaxAmount(),
    "expiryDate": authManagerRef!.getExpiryDate(),
    "message": isValid ? "Authorization is valid" : "Authorization expired or inactive"
  }}
}}
"""


INSURED_TRANSFER_TRANSACTION = """
import FlowSureActions from {service}
import FungibleToken from 0x9a0766d93b6608b7
import FlowToken from 0x7e60df042a9c0868
import Scheduler from {service}

transaction(userAddress: Address, recipient: Address, amount: UFix64, retryLimit: UInt8) {{

  let action: FlowSureActions.InsuredTransferAction
  let userVaultRef: auth(FungibleToken.Withdraw) &FlowToken.Vault
  let recipientVaultCap: Capability<&{{FungibleToken.Receiver}}>

  prepare(signer: auth(BorrowValue) &Account) {{
    self.action = FlowSureActions.createInsuredTransfer(
      baseFee: 0.02,
      compensationAmount: 5.0,
      retryLimit: retryLimit,
      retryDelay: 30.0
    )

    let userAccount = getAccount(userAddress)
    self.userVaultRef = userAccount.storage.borrow<auth(FungibleToken.Withdraw) &FlowToken.Vault>(
      from: /storage/flowTokenVault
    ) ?? panic("Could not borrow user's FlowToken vault")

    let recipientAccount = getAccount(recipient)
    self.recipientVaultCap = recipientAccount.capabilities.get<&{{FungibleToken.Receiver}}>(
      /public/flowTokenReceiver
    )

    if !self.recipientVaultCap.check() {{
      panic("Recipient does not have a valid FlowToken receiver")
    }}
  }}

  execute {{
    let tokens <- self.userVaultRef.withdraw(amount: amount)

    let receiverRef = self.recipientVaultCap.borrow()
      ?? panic("Could not borrow recipient's receiver reference")

    receiverRef.deposit(from: <-tokens)

    let params: {{String: AnyStruct}} = {{
      "recipient": recipient,
      "amount": amount,
      "shouldFail": false
    }}

    let result = self.action.execute(user: userAddress, params: params)

    if !result.success {{
      let schedulerRef = Scheduler.borrowSchedulerManager()
      schedulerRef.scheduleRetry(
        actionId: result.actionId,
        user: userAddress,
        targetAction: "transfer",
        params: params,
        retryLimit: retryLimit,
        delay: 30.0
      )
    }}
  }}
}}
"""


CREATE_AUTHORIZATION_TRANSACTION = """
import ScheduledTransfer from {contract}

transaction(maxAmountPerTransfer: UFix64, expiryDays: UFix64) {{

  prepare(signer: AuthAccount) {{
    let expiryDate = getCurrentBlock().timestamp + (expiryDays * 86400.0)

    if signer.borrow<&ScheduledTransfer.AuthorizationManager>(
      from: ScheduledTransfer.AuthorizationStoragePath
    ) == nil {{
      let authManager <- ScheduledTransfer.createAuthorizationManager()
      signer.save(<-authManager, to: ScheduledTransfer.AuthorizationStoragePath)

      signer.link<&ScheduledTransfer.AuthorizationManager{{ScheduledTransfer.AuthorizationPublic}}>(
        ScheduledTransfer.AuthorizationPublicPath,
        target: ScheduledTransfer.AuthorizationStoragePath
      )
    }}

    let authManagerRef = signer.borrow<&ScheduledTransfer.AuthorizationManager>(
      from: ScheduledTransfer.AuthorizationStoragePath
    ) ?? panic("Could not borrow authorization manager")

    let authId = authManagerRef.createAuthorization(
      maxAmountPerTransfer: maxAmountPerTransfer,
      expiryDate: expiryDate
    )

    log("Authorization created: ".concat(authId))
  }}
}}
"""


# ─── JSON-Cadence encoding ───────────────────────────────────────

def address_arg(address: str) -> dict:
    return {"type": "Address", "value": address}


def ufix64_arg(value) -> dict:
    return {"type": "UFix64", "value": format_amount(value)}


def uint8_arg(value: int) -> dict:
    if not 0 <= value <= 255:
        raise ValueError(f"UInt8 out of range: {value}")
    return {"type": "UInt8", "value": str(value)}


_INTEGER_TYPES = frozenset({
    "Int", "Int8", "Int16", "Int32", "Int64", "Int128", "Int256",
    "UInt", "UInt8", "UInt16", "UInt32", "UInt64", "UInt128", "UInt256",
    "Word8", "Word16", "Word32", "Word64",
})
_FIXED_POINT_TYPES = frozenset({"UFix64", "Fix64"})
_STRING_TYPES = frozenset({"String", "Address", "Character"})
_COMPOSITE_TYPES = frozenset({"Struct", "Resource", "Event", "Contract", "Enum"})


def decode_cadence(node: dict):
    """Convert a JSON-Cadence value into plain Python."""
    kind = node.get("type")
    value = node.get("value")
    if kind == "Optional":
        return decode_cadence(value) if value is not None else None
    if kind == "Void":
        return None
    if kind == "Bool":
        return bool(value)
    if kind in _STRING_TYPES:
        return value
    if kind in _FIXED_POINT_TYPES:
        return Decimal(value)
    if kind in _INTEGER_TYPES:
        return int(value)
    if kind == "Array":
        return [decode_cadence(item) for item in value]
    if kind == "Dictionary":
        return {
            decode_cadence(entry["key"]): decode_cadence(entry["value"])
            for entry in value
        }
    if kind in _COMPOSITE_TYPES:
        return {
            f["name"]: decode_cadence(f["value"]) for f in value.get("fields", [])
        }
    return value


def build_authorization_transaction(
    contract: str, max_amount_per_transfer, expiry_days,
) -> dict:
    """Transaction the user signs to grant scheduled-transfer authorization."""
    return {
        "cadence": CREATE_AUTHORIZATION_TRANSACTION.format(contract=contract),
        "arguments": [
            ufix64_arg(max_amount_per_transfer),
            ufix64_arg(expiry_days),
        ],
    }
