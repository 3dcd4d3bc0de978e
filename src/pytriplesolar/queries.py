"""GraphQL documents used against the TripleSolar API."""

from __future__ import annotations


READ_HEAT_PUMP_SETTINGS_OPERATION = "ReadHeatPumpSettings"
READ_HEAT_PUMP_SETTINGS_QUERY = """
query ReadHeatPumpSettings($interfaceId: String!) {
  interface(interfaceId: $interfaceId) {
    id
    firmwareVersion {
      version
      timestamp
      __typename
    }
    controller {
      backupHeater
      chSetpMaxTemp
      manualCoolingMode
      __typename
    }
    name
    openThermBoilerConnected
    pvtHeatPump {
      id
      firmwareVersion
      dhwMode
      roomTemperatureControl
      roomControlType
      shBackupEnable
      sinkMinShTemp
      sinkMaxShTemp
      flushingMode
      dhwAutoTemp
      shRoomSetpTemp
      shRoomHysteresisTemp
      scRoomSetpTemp
      scRoomHysteresisTemp
      sinkCoolingPauseThresholdTemp
      dhwState
      spaceHeatingCoolingState
      shBoostEnabled
      dhwBoostEnabled
      boostSourceTemp
      errors
      dhwBoilerTemp
      compressorOn
      electricElementOn
      coolingValveEnabled
      pumpRelayOn
      sourcePumpPerc
      sinkPumpPerc
      sourceInTemp
      sourceOutTemp
      sinkInTemp
      sinkOutTemp
      compressorDischarge
      __typename
    }
    openTherm {
      roomTemp
      roomSetpTemp
      __typename
    }
    status {
      signalStrength
      operatorName
      __typename
    }
    __typename
  }
}
"""

SET_TARGET_TEMPERATURE_OPERATION = "SetTargetTemperature"
SET_TARGET_TEMPERATURE_MUTATION = """
mutation SetTargetTemperature($interfaceId: ID!, $temperature: Float!) {
  setTargetTemperature(interfaceId: $interfaceId, temperature: $temperature) {
    success
    message
    __typename
  }
}
"""

# Primary boiler mode mutation; returns a bare boolean or null.
UPDATE_PVT_HEAT_PUMP_OPERATION = "UpdatePvtHeatPumpSettings"
UPDATE_PVT_HEAT_PUMP_MUTATION = """
mutation UpdatePvtHeatPumpSettings($interfaceIds: [String!]!, $pvtHeatPumpdata: PvtHeatPumpInput!) {
  updatePvtHeatPump(data: $pvtHeatPumpdata, interfaceIds: $interfaceIds)
}
"""

# Fallback boiler mode mutation; returns {success, message}.
SET_DHW_MODE_OPERATION = "SetBoilerMode"
SET_DHW_MODE_MUTATION = """
mutation SetBoilerMode($interfaceId: ID!, $mode: String!) {
  setDhwMode(interfaceId: $interfaceId, mode: $mode) {
    success
    message
    __typename
  }
}
"""
